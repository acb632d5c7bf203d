"""Process-scoped service wiring and FastAPI dependencies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import httpx
from fastapi import HTTPException, status

from wikiextract.config import Settings, get_settings
from wikiextract.costs import Pricing
from wikiextract.errors import (
    AIError,
    ArticleNotFoundError,
    ExtractorError,
    FetchError,
    ParseError,
    RequestTimeoutError,
    ValidationError,
)
from wikiextract.secret_store import CREDENTIAL_KEY, InMemorySecretStore, SecretStore
from wikiextract.services.discovery.service import DiscoveryService
from wikiextract.services.extraction.pipeline import ExtractionPipeline
from wikiextract.services.llm.client import CompletionClient
from wikiextract.services.llm.enrichment import EnrichmentOrchestrator
from wikiextract.services.wiki.client import WikipediaClient

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    secret_store: SecretStore
    wiki_client: WikipediaClient
    completion_client: CompletionClient
    enrichment: EnrichmentOrchestrator
    pipeline: ExtractionPipeline
    discovery: DiscoveryService

    @property
    def pricing(self) -> Pricing:
        return pricing_from_settings(self.settings)

    async def aclose(self) -> None:
        await self.wiki_client.aclose()
        await self.completion_client.aclose()


def pricing_from_settings(settings: Settings) -> Pricing:
    return Pricing(
        input_per_million=settings.input_cost_per_million,
        output_per_million=settings.output_cost_per_million,
    )


def build_secret_store(settings: Settings) -> InMemorySecretStore:
    store = InMemorySecretStore()
    if settings.anthropic_api_key:
        store.set(CREDENTIAL_KEY, settings.anthropic_api_key)
    return store


def build_container(
    settings: Settings,
    secret_store: Optional[SecretStore] = None,
    wiki_transport: Optional[httpx.AsyncBaseTransport] = None,
    llm_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceContainer:
    """Wire every service from settings. Transports are injectable for tests."""
    store = secret_store if secret_store is not None else build_secret_store(settings)
    wiki_client = WikipediaClient(
        api_url=settings.wiki_api_url,
        user_agent=settings.wiki_user_agent,
        timeout_s=settings.wiki_timeout_seconds,
        preview_timeout_s=settings.wiki_preview_timeout_seconds,
        transport=wiki_transport,
    )
    completion_client = CompletionClient(
        store,
        api_url=settings.anthropic_api_url,
        api_version=settings.anthropic_api_version,
        model=settings.anthropic_model,
        default_max_tokens=settings.llm_max_tokens,
        timeout_s=settings.llm_timeout_seconds,
        max_retries=settings.llm_max_retries,
        retry_delay_s=settings.llm_retry_delay_seconds,
        transport=llm_transport,
    )
    enrichment = EnrichmentOrchestrator(
        completion_client,
        default_ratio=settings.summary_ratio,
        min_ratio=settings.min_summary_ratio,
        max_ratio=settings.max_summary_ratio,
    )
    pipeline = ExtractionPipeline(
        wiki_client,
        enrichment,
        max_table_rows=settings.max_table_rows,
        default_ratio=settings.summary_ratio,
        request_delay_s=settings.request_delay_seconds,
        max_batch_size=settings.max_batch_size,
        pricing=pricing_from_settings(settings),
    )
    discovery = DiscoveryService(
        completion_client,
        wiki_client,
        batch_size=settings.discovery_batch_size,
        max_tokens=settings.discovery_max_tokens,
        validation_batch_size=settings.validation_batch_size,
        validation_pause_s=settings.validation_pause_seconds,
        continuation_title_cap=settings.continuation_title_cap,
    )
    return ServiceContainer(
        settings=settings,
        secret_store=store,
        wiki_client=wiki_client,
        completion_client=completion_client,
        enrichment=enrichment,
        pipeline=pipeline,
        discovery=discovery,
    )


@lru_cache(maxsize=1)
def get_container() -> ServiceContainer:
    """Return the cached process-wide container."""
    return build_container(get_settings())


def get_secret_store() -> SecretStore:
    return get_container().secret_store


def get_completion_client() -> CompletionClient:
    return get_container().completion_client


def get_pipeline() -> ExtractionPipeline:
    return get_container().pipeline


def get_discovery_service() -> DiscoveryService:
    return get_container().discovery


def to_http_exception(exc: ExtractorError) -> HTTPException:
    """Map a domain error to the HTTP status the API reports for it."""
    if isinstance(exc, (ValidationError, ParseError)):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, ArticleNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, RequestTimeoutError):
        code = status.HTTP_504_GATEWAY_TIMEOUT
    elif isinstance(exc, (FetchError, AIError)):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.warning("Request failed with %d: %s", code, exc)
    return HTTPException(status_code=code, detail=str(exc))
