"""Article discovery routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from wikiextract.dependencies import get_discovery_service, to_http_exception
from wikiextract.errors import ExtractorError
from wikiextract.services.discovery.models import SearchBatch
from wikiextract.services.discovery.service import DiscoveryService

MAX_QUERY_LEN = 500

router = APIRouter(prefix="/discover", tags=["discover"])


class DiscoverRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=MAX_QUERY_LEN)


class ContinueRequest(DiscoverRequest):
    loaded_titles: list[str] = Field(default_factory=list)
    batch_number: int = Field(default=1, ge=0)


class CandidateOut(BaseModel):
    id: str
    title: str
    url: str
    description: str


class BatchResponse(BaseModel):
    candidates: list[CandidateOut]
    estimated_total: int
    input_tokens: int
    output_tokens: int


def _to_response(batch: SearchBatch) -> BatchResponse:
    return BatchResponse(
        candidates=[
            CandidateOut(id=item.id, title=item.title, url=item.url, description=item.description)
            for item in batch.candidates
        ],
        estimated_total=batch.estimated_total,
        input_tokens=batch.input_tokens,
        output_tokens=batch.output_tokens,
    )


@router.post("", response_model=BatchResponse)
async def discover(
    payload: DiscoverRequest,
    service: Annotated[DiscoveryService, Depends(get_discovery_service)],
) -> BatchResponse:
    """Initial search: estimated total plus the first validated batch."""
    try:
        batch = await service.discover(payload.query)
    except ExtractorError as exc:
        raise to_http_exception(exc) from exc
    return _to_response(batch)


@router.post("/more", response_model=BatchResponse)
async def discover_more(
    payload: ContinueRequest,
    service: Annotated[DiscoveryService, Depends(get_discovery_service)],
) -> BatchResponse:
    try:
        batch = await service.continue_discovery(
            payload.query, payload.loaded_titles, payload.batch_number
        )
    except ExtractorError as exc:
        raise to_http_exception(exc) from exc
    return _to_response(batch)
