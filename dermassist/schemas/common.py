"""Common types and error response schema."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SeverityType = Literal["mild", "moderate", "severe"]
ProviderKindType = Literal["openai", "hosted", "ollama", "classifier"]


class CamelModel(BaseModel):
    """Serializes with camelCase keys; accepts either spelling on input."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )


class ProviderAttemptInfo(CamelModel):
    """One failed provider invocation, for diagnostics."""

    provider: str
    kind: str = Field(..., description="Error kind from the closed taxonomy")
    message: str
    elapsed_ms: float = 0.0


class ErrorResponse(BaseModel):
    """Response model for API errors."""

    error: str = Field(
        ...,
        description="Error type",
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
    )
    request_id: str | None = Field(
        default=None,
        description="Request ID if available",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional error details",
    )


class FailureResponse(CamelModel):
    """Structured failure for backend exhaustion or invalid input."""

    success: Literal[False] = False
    message: str
    error: str = Field(..., description="Error kind from the closed taxonomy")
    suggestion: str | None = None
    attempts: list[ProviderAttemptInfo] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
