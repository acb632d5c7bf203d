"""Health and readiness routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from wikiextract.dependencies import get_secret_store
from wikiextract.secret_store import CREDENTIAL_KEY, SecretStore

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    """Simple liveness probe."""
    return {"status": "ok"}


@router.get("/ready")
def ready(store: Annotated[SecretStore, Depends(get_secret_store)]) -> dict[str, str]:
    """
    Readiness probe.

    Enrichment and discovery need an LLM credential in the secret store.
    """
    if not store.get(CREDENTIAL_KEY):
        raise HTTPException(status_code=503, detail="No LLM API key configured")
    return {"status": "ok"}
