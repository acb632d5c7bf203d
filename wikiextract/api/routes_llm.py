"""Routes for LLM smoke testing."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from wikiextract.dependencies import get_completion_client, to_http_exception
from wikiextract.errors import AIError
from wikiextract.services.llm.client import CompletionClient

MAX_PROMPT_LEN = 2000
SMOKE_MAX_TOKENS = 256

router = APIRouter(prefix="/llm", tags=["llm"])


class SmokeRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=MAX_PROMPT_LEN)
    system: str | None = Field(default=None, description="Optional system prompt")


class SmokeResponse(BaseModel):
    ok: bool
    model: str
    text: str
    input_tokens: int
    output_tokens: int


@router.post("/smoke", response_model=SmokeResponse, status_code=status.HTTP_200_OK)
async def smoke(
    payload: SmokeRequest, client: Annotated[CompletionClient, Depends(get_completion_client)]
) -> SmokeResponse:
    """Send one prompt through the completion client without touching Wikipedia."""
    try:
        completion = await client.complete(
            payload.prompt, system=payload.system, max_tokens=SMOKE_MAX_TOKENS
        )
    except AIError as exc:
        raise to_http_exception(exc) from exc

    return SmokeResponse(
        ok=True,
        model=client.model,
        text=completion.text,
        input_tokens=completion.usage.input_tokens,
        output_tokens=completion.usage.output_tokens,
    )
