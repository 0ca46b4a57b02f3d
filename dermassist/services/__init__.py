"""Orchestration services: health cache, fallback router, validator, orchestrator."""

from dermassist.services.health_cache import HealthCache, ProviderHealth
from dermassist.services.orchestrator import (
    AdviceOutcome,
    AdviceRequest,
    ChatRequest,
    ClassificationOutcome,
    RequestOrchestrator,
    RequestState,
)
from dermassist.services.router import FallbackRouter, RoutedResult
from dermassist.services.validation import ClassificationResult, ResponseValidator, Severity

__all__ = [
    "AdviceOutcome",
    "AdviceRequest",
    "ChatRequest",
    "ClassificationOutcome",
    "ClassificationResult",
    "FallbackRouter",
    "HealthCache",
    "ProviderHealth",
    "RequestOrchestrator",
    "RequestState",
    "ResponseValidator",
    "RoutedResult",
    "Severity",
]
