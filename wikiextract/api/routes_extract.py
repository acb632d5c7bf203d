"""Article extraction and preview routes."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from wikiextract.dependencies import get_pipeline, to_http_exception
from wikiextract.errors import ExtractorError
from wikiextract.services.extraction.pipeline import ExtractionPipeline, ProgressLog
from wikiextract.urls import resolve_source

router = APIRouter(tags=["extract"])


class ExtractRequest(BaseModel):
    source: str = Field(..., min_length=1, description="Wikipedia URL or article title")
    ai_enabled: bool = True
    summary_ratio: float | None = Field(default=None, ge=0.0, le=1.0)


class ExtractResponse(BaseModel):
    steps: list[str]
    extraction: dict[str, Any]


class PreviewResponse(BaseModel):
    title: str
    extract: str
    categories: list[str]
    thumbnail: str | None
    page_url: str


@router.post("/extract", response_model=ExtractResponse)
async def extract(
    payload: ExtractRequest, pipeline: Annotated[ExtractionPipeline, Depends(get_pipeline)]
) -> ExtractResponse:
    progress = ProgressLog()
    try:
        extraction = await pipeline.extract(
            payload.source,
            ai_enabled=payload.ai_enabled,
            summary_ratio=payload.summary_ratio,
            progress=progress,
        )
    except ExtractorError as exc:
        raise to_http_exception(exc) from exc
    return ExtractResponse(
        steps=[step.value for step in progress.steps], extraction=extraction.to_dict()
    )


@router.get("/preview", response_model=PreviewResponse)
async def preview(
    source: Annotated[str, Query(min_length=1)],
    pipeline: Annotated[ExtractionPipeline, Depends(get_pipeline)],
) -> PreviewResponse:
    """Lightweight intro extract for an article, without parsing or enrichment."""
    try:
        resolved = resolve_source(source)
        result = await pipeline.wiki_client.fetch_preview(resolved.title)
    except ExtractorError as exc:
        raise to_http_exception(exc) from exc
    return PreviewResponse(
        title=result.title,
        extract=result.short_extract,
        categories=result.display_categories,
        thumbnail=result.thumbnail,
        page_url=result.page_url,
    )
