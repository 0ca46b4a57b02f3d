"""Health check and provider status endpoints."""

from fastapi import APIRouter, Depends, Query

from dermassist.api.deps import (
    get_app_settings,
    get_health_cache,
    get_orchestrator,
    get_provider_config,
)
from dermassist.core.config import Settings
from dermassist.providers.base import ProviderConfig, ProviderDescriptor, RequestKind
from dermassist.schemas import HealthResponse, ProvidersResponse, ProviderStatus
from dermassist.services.health_cache import HealthCache, ProviderHealth
from dermassist.services.orchestrator import RequestOrchestrator

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Basic liveness check - returns healthy if the service is running",
)
async def health_check(
    settings: Settings = Depends(get_app_settings),
) -> HealthResponse:
    """Basic health check endpoint for liveness probes."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


def _status(descriptor: ProviderDescriptor, record: ProviderHealth) -> ProviderStatus:
    return ProviderStatus(**descriptor.to_public_dict(), **record.to_dict())


@router.get(
    "/providers",
    response_model=ProvidersResponse,
    summary="Provider Status",
    description=(
        "Configured backends in fallback order with their cached health. "
        "Pass refresh=true to probe every backend now."
    ),
)
async def provider_status(
    refresh: bool = Query(default=False, description="Probe every provider before answering"),
    config: ProviderConfig = Depends(get_provider_config),
    health: HealthCache = Depends(get_health_cache),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> ProvidersResponse:
    records = await health.refresh_all() if refresh else health.snapshot()

    def statuses(kind: RequestKind) -> list[ProviderStatus]:
        return [
            _status(d, records.get(d.id, ProviderHealth(provider=d.id)))
            for d in config.for_kind(kind)
        ]

    return ProvidersResponse(
        classification=statuses(RequestKind.CLASSIFICATION),
        generation=statuses(RequestKind.GENERATION),
        stale_after=health.stale_after,
        confidence_threshold=orchestrator.validator.threshold,
        valid_labels=list(orchestrator.validator.valid_labels),
    )
