"""External inference backends: canonical types, error taxonomy and adapters."""

from dermassist.providers.base import (
    ClassificationRequest,
    GenerationRequest,
    GenerationResult,
    ProbeResult,
    ProviderAdapter,
    ProviderConfig,
    ProviderDescriptor,
    ProviderKind,
    RawPrediction,
    RequestKind,
    SymptomContext,
)
from dermassist.providers.errors import (
    ErrorKind,
    NoProviderAvailable,
    ProviderAttempt,
    ProviderError,
    SkippedProvider,
    suggestion_for,
)
from dermassist.providers.registry import build_adapters, build_provider_config, close_adapters

__all__ = [
    "ClassificationRequest",
    "ErrorKind",
    "GenerationRequest",
    "GenerationResult",
    "NoProviderAvailable",
    "ProbeResult",
    "ProviderAdapter",
    "ProviderAttempt",
    "ProviderConfig",
    "ProviderDescriptor",
    "ProviderError",
    "ProviderKind",
    "RawPrediction",
    "RequestKind",
    "SkippedProvider",
    "SymptomContext",
    "build_adapters",
    "build_provider_config",
    "close_adapters",
    "suggestion_for",
]
