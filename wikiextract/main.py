"""FastAPI entrypoint for the Wikipedia extraction service."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from wikiextract.api.routes_discover import router as discover_router
from wikiextract.api.routes_extract import router as extract_router
from wikiextract.api.routes_health import router as health_router
from wikiextract.api.routes_llm import router as llm_router
from wikiextract.config import get_settings
from wikiextract.dependencies import get_container
from wikiextract.logging_config import setup_logging


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    yield
    if get_container.cache_info().currsize:
        await get_container().aclose()
        get_container.cache_clear()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json, log_file=settings.log_file)

    application = FastAPI(
        title="Wikipedia Article Extractor",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.include_router(health_router)
    application.include_router(llm_router)
    application.include_router(extract_router)
    application.include_router(discover_router)

    application.state.settings = settings
    return application


app = create_app()
