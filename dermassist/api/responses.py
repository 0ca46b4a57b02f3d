"""Mapping of failed orchestration outcomes onto HTTP responses."""

from fastapi import status
from fastapi.responses import JSONResponse

from dermassist.providers.errors import ErrorKind
from dermassist.schemas import FailureResponse, ProviderAttemptInfo
from dermassist.services.orchestrator import Outcome

STATUS_FOR_ERROR = {
    ErrorKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NO_PROVIDER_AVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def failure_response(outcome: Outcome, status_code: int | None = None) -> JSONResponse:
    """Render a ``failed`` outcome with its diagnostics and operator hint."""
    kind = outcome.error or ErrorKind.NO_PROVIDER_AVAILABLE
    body = FailureResponse(
        message=outcome.message,
        error=kind.value,
        suggestion=outcome.suggestion,
        attempts=[
            ProviderAttemptInfo(
                provider=a.provider,
                kind=a.kind.value,
                message=a.message,
                elapsed_ms=round(a.elapsed_ms, 2),
            )
            for a in outcome.attempts
        ],
        skipped=[f"{s.provider}: {s.reason}" for s in outcome.skipped],
    )
    return JSONResponse(
        status_code=status_code or STATUS_FOR_ERROR.get(kind, status.HTTP_502_BAD_GATEWAY),
        content=body.model_dump(by_alias=True, mode="json"),
    )
