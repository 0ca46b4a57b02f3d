"""Health and provider status schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from dermassist.schemas.common import CamelModel, ProviderKindType


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    model_config = ConfigDict(title="Health status (version, environment)")

    status: Literal["healthy", "degraded", "unhealthy"] = Field(
        ...,
        description="Overall health status of the service",
    )
    version: str = Field(
        ...,
        description="Application version",
    )
    environment: str = Field(
        ...,
        description="Current environment (development, staging, production)",
    )


class ProviderStatus(CamelModel):
    """Configuration and cached health of one provider. Never carries secrets."""

    id: str
    kind: ProviderKindType
    endpoint: str
    model: str | None = None
    credentials_present: bool
    requires_credentials: bool
    requires_health: bool
    timeout: float
    available: bool
    last_checked: datetime | None = None
    detail: str
    models: list[str] = Field(default_factory=list)


class ProvidersResponse(CamelModel):
    classification: list[ProviderStatus]
    generation: list[ProviderStatus]
    stale_after: float
    confidence_threshold: float
    valid_labels: list[str]
