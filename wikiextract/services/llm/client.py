"""Anthropic Messages API client with linear retry/backoff and usage accounting."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import httpx

from wikiextract.errors import AIError, AIErrorKind
from wikiextract.secret_store import CREDENTIAL_KEY, SecretStore
from wikiextract.services.llm.models import Completion, TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_API_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-sonnet-4-20250514"
VALIDATION_TIMEOUT = 30.0

Sleep = Callable[[float], Awaitable[None]]


class CompletionClient:
    """
    Single-turn completion client.

    401 is fatal. 429, 5xx and transport failures are retried up to
    ``max_retries`` times, waiting ``retry_delay_s * attempt`` between tries.
    Any other status is reported as unexpected without a retry.
    """

    def __init__(
        self,
        secret_store: SecretStore,
        *,
        api_url: str = DEFAULT_API_URL,
        api_version: str = DEFAULT_API_VERSION,
        model: str = DEFAULT_MODEL,
        default_max_tokens: int = 4096,
        timeout_s: float = 240.0,
        max_retries: int = 3,
        retry_delay_s: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.secret_store = secret_store
        self.api_url = api_url
        self.api_version = api_version
        self.model = model
        self.default_max_tokens = default_max_tokens
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.retry_delay_s = retry_delay_s
        self._sleep = sleep
        self._client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _credential(self) -> str:
        api_key = self.secret_store.get(CREDENTIAL_KEY)
        if not api_key:
            logger.error("No API key found in the secret store")
            raise AIError(AIErrorKind.NO_CREDENTIAL)
        return api_key

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": self.api_version,
        }

    def _payload(self, prompt: str, system: Optional[str], max_tokens: int) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            payload["system"] = system
        return payload

    async def complete(
        self, prompt: str, system: Optional[str] = None, max_tokens: Optional[int] = None
    ) -> Completion:
        """Send one prompt and return the first text block with reported usage."""
        api_key = self._credential()
        token_limit = max_tokens or self.default_max_tokens
        payload = self._payload(prompt, system, token_limit)
        logger.info(
            "Sending completion request (%d chars, max tokens: %d)", len(prompt), token_limit
        )

        # overall deadline leaves room for the retries of one logical call
        deadline = self.timeout_s * 2
        try:
            return await asyncio.wait_for(
                self._send_with_retries(api_key, payload), timeout=deadline
            )
        except asyncio.TimeoutError as exc:
            logger.error("Completion exceeded the overall deadline of %.0fs", deadline)
            raise AIError(AIErrorKind.TIMEOUT, detail=f"exceeded {deadline:.0f}s") from exc

    async def _send_with_retries(self, api_key: str, payload: Dict[str, Any]) -> Completion:
        attempt = 0
        while True:
            if attempt:
                logger.info("Retry attempt %d/%d", attempt, self.max_retries)
            try:
                return await self._send_once(api_key, payload)
            except AIError as exc:
                if not exc.is_retryable or attempt >= self.max_retries:
                    raise
                delay = self.retry_delay_s * (attempt + 1)
                logger.warning("%s, retrying in %.1fs", exc, delay)
                await self._sleep(delay)
                attempt += 1

    async def _send_once(self, api_key: str, payload: Dict[str, Any]) -> Completion:
        started = time.monotonic()
        try:
            response = await self._client.post(
                self.api_url, json=payload, headers=self._headers(api_key)
            )
        except httpx.TimeoutException as exc:
            raise AIError(AIErrorKind.TIMEOUT, detail=str(exc) or "request timed out") from exc
        except httpx.RequestError as exc:
            raise AIError(AIErrorKind.NETWORK_ERROR, detail=str(exc)) from exc

        status = response.status_code
        logger.info("Completion response: %d (took %.1fs)", status, time.monotonic() - started)
        if status == 200:
            return self._decode(response)
        if status == 401:
            raise AIError(AIErrorKind.INVALID_CREDENTIAL, status_code=status)
        if status == 429:
            raise AIError(AIErrorKind.RATE_LIMITED, status_code=status)
        if 500 <= status <= 599:
            raise AIError(AIErrorKind.SERVER_ERROR, status_code=status)
        logger.debug("Unexpected response body: %s", response.text[:500])
        raise AIError(AIErrorKind.UNEXPECTED, status_code=status)

    @staticmethod
    def _decode(response: httpx.Response) -> Completion:
        try:
            data = response.json()
            blocks = data.get("content") or []
            usage = data.get("usage") or {}
            text = next(
                (str(block.get("text", "")) for block in blocks if block.get("type", "text") == "text"),
                None,
            )
            reported = TokenUsage(
                input_tokens=int(usage.get("input_tokens", 0)),
                output_tokens=int(usage.get("output_tokens", 0)),
            )
        except (ValueError, AttributeError, TypeError) as exc:
            logger.debug("Raw response: %s", response.text[:500])
            raise AIError(AIErrorKind.INVALID_RESPONSE, detail=str(exc)) from exc
        if text is None:
            raise AIError(AIErrorKind.INVALID_RESPONSE, detail="no text content")
        logger.info("Tokens used: %d in, %d out", reported.input_tokens, reported.output_tokens)
        return Completion(text=text, usage=reported)

    async def check_credential(self) -> Tuple[bool, Optional[str]]:
        """Probe the API with a 10-token request. Rate limiting still counts as a valid key."""
        api_key = self.secret_store.get(CREDENTIAL_KEY)
        if not api_key:
            return False, "No API key configured"
        try:
            response = await self._client.post(
                self.api_url,
                json=self._payload("Say 'OK'", None, 10),
                headers=self._headers(api_key),
                timeout=VALIDATION_TIMEOUT,
            )
        except httpx.RequestError as exc:
            logger.warning("Credential check failed: %s", exc)
            return False, str(exc) or exc.__class__.__name__

        status = response.status_code
        if status in (200, 429):
            return True, None
        if status == 401:
            return False, "Invalid API key"
        if status == 403:
            return False, "Access forbidden - check API key permissions"
        return False, f"Unexpected status code: {status}"
