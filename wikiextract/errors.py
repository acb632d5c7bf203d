"""Exception taxonomy for fetching, parsing, enrichment and discovery."""

from __future__ import annotations

from enum import Enum


class ExtractorError(Exception):
    """Base exception for the extraction service."""


class ValidationError(ExtractorError):
    """Raised for malformed article identifiers or batch input."""


class FetchError(ExtractorError):
    """Raised when the Wikipedia API cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.message = message
        if status_code is not None:
            super().__init__(f"Wikipedia API error {status_code}: {message}")
        else:
            super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.status_code == 429 or (
            self.status_code is not None and 500 <= self.status_code <= 599
        )


class ArticleNotFoundError(FetchError):
    """Raised when the requested page does not exist."""

    def __init__(self, title: str) -> None:
        self.title = title
        super().__init__(f"Article not found: {title}", status_code=None)


class RequestTimeoutError(ExtractorError):
    """Raised when a Wikipedia request times out."""


class ParseReason(str, Enum):
    INVALID_MARKUP = "invalid_markup"
    MISSING_CONTENT = "missing_content"


class ParseError(ExtractorError):
    """Raised when article markup cannot be minimally structured."""

    def __init__(self, reason: ParseReason, detail: str = "") -> None:
        self.reason = reason
        message = reason.value.replace("_", " ")
        super().__init__(f"{message}: {detail}" if detail else message)


class AIErrorKind(str, Enum):
    NO_CREDENTIAL = "no_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    INVALID_RESPONSE = "invalid_response"
    TIMEOUT = "timeout"
    UNEXPECTED = "unexpected"


_AI_MESSAGES = {
    AIErrorKind.NO_CREDENTIAL: "No API key configured",
    AIErrorKind.INVALID_CREDENTIAL: "Invalid API key",
    AIErrorKind.RATE_LIMITED: "AI rate limited",
    AIErrorKind.SERVER_ERROR: "AI server error",
    AIErrorKind.NETWORK_ERROR: "Could not reach the AI service",
    AIErrorKind.INVALID_RESPONSE: "Invalid response from AI",
    AIErrorKind.TIMEOUT: "AI request timed out",
    AIErrorKind.UNEXPECTED: "Unexpected AI error",
}


class AIError(ExtractorError):
    """Raised when an LLM completion fails."""

    def __init__(self, kind: AIErrorKind, status_code: int | None = None, detail: str = "") -> None:
        self.kind = kind
        self.status_code = status_code
        message = _AI_MESSAGES[kind]
        if status_code is not None:
            message = f"{message} ({status_code})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.kind in {
            AIErrorKind.RATE_LIMITED,
            AIErrorKind.SERVER_ERROR,
            AIErrorKind.NETWORK_ERROR,
            AIErrorKind.TIMEOUT,
        }


class ExtractionCancelled(ExtractorError):
    """Raised at a step boundary once an extraction has been cancelled."""
