"""Closed error taxonomy shared by provider adapters, the router and the orchestrator."""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Backend-agnostic failure kinds."""

    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    INVALID_RESPONSE_SHAPE = "invalid_response_shape"
    AUTH_REJECTED = "auth_rejected"
    BACKEND_OVERLOADED = "backend_overloaded"
    NO_PROVIDER_AVAILABLE = "no_provider_available"
    INVALID_REQUEST = "invalid_request"


SUGGESTIONS: dict[ErrorKind, str] = {
    ErrorKind.CONNECTION_REFUSED: (
        "A backend could not be reached. Make sure the local Ollama daemon is running "
        "(ollama serve) or visit the hosted space URL to wake it up."
    ),
    ErrorKind.TIMEOUT: (
        "A backend exceeded its time budget. Switch to a smaller, faster local model "
        "(e.g. ollama pull tinyllama and set OLLAMA_MODEL=tinyllama) or raise the timeout."
    ),
    ErrorKind.INVALID_RESPONSE_SHAPE: (
        "A backend replied with an unexpected payload. Check the configured model name "
        "and endpoint URL."
    ),
    ErrorKind.AUTH_REJECTED: "A credential was rejected. Check the API key in your .env file.",
    ErrorKind.BACKEND_OVERLOADED: (
        "A backend is rate limited or still loading its model. Try again shortly."
    ),
    ErrorKind.NO_PROVIDER_AVAILABLE: (
        "No backend could serve the request. Configure OPENAI_API_KEY, LLM_URL or a "
        "local Ollama model (recommended: ollama pull tinyllama)."
    ),
    ErrorKind.INVALID_REQUEST: "Check the request fields and try again.",
}


def suggestion_for(kind: ErrorKind) -> str:
    """Operator-facing hint for an error kind."""
    return SUGGESTIONS[kind]


def kind_for_status(status_code: int) -> ErrorKind:
    """Map a non-2xx HTTP status onto the taxonomy."""
    if status_code in (401, 403):
        return ErrorKind.AUTH_REJECTED
    if status_code in (408, 504):
        return ErrorKind.TIMEOUT
    if status_code == 429 or status_code >= 500:
        return ErrorKind.BACKEND_OVERLOADED
    return ErrorKind.INVALID_RESPONSE_SHAPE


class ProviderError(Exception):
    """Raised by adapters; the only exception type that leaves a provider."""

    def __init__(
        self,
        kind: ErrorKind,
        provider: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.provider = provider
        self.message = message
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"ProviderError(kind={self.kind.value!r}, provider={self.provider!r})"


@dataclass(frozen=True)
class ProviderAttempt:
    """Diagnostic record of one failed provider invocation."""

    provider: str
    kind: ErrorKind
    message: str
    elapsed_ms: float = 0.0

    @classmethod
    def from_error(cls, error: ProviderError, elapsed_ms: float = 0.0) -> "ProviderAttempt":
        return cls(
            provider=error.provider,
            kind=error.kind,
            message=error.message,
            elapsed_ms=elapsed_ms,
        )


@dataclass(frozen=True)
class SkippedProvider:
    """A provider the router did not invoke, and why."""

    provider: str
    reason: str


class NoProviderAvailable(Exception):
    """Every configured provider for a request kind failed or was skipped."""

    kind = ErrorKind.NO_PROVIDER_AVAILABLE

    def __init__(
        self,
        request_kind: str,
        attempts: Sequence[ProviderAttempt],
        skipped: Sequence[SkippedProvider] = (),
    ) -> None:
        super().__init__(
            f"No {request_kind} provider available "
            f"({len(attempts)} attempted, {len(skipped)} skipped)"
        )
        self.request_kind = request_kind
        self.attempts = list(attempts)
        self.skipped = list(skipped)


__all__ = [
    "ErrorKind",
    "NoProviderAvailable",
    "ProviderAttempt",
    "ProviderError",
    "SkippedProvider",
    "kind_for_status",
    "suggestion_for",
]
