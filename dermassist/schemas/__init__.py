"""API request and response schemas."""

from dermassist.schemas.advice import (
    AdviceRequestBody,
    AdviceResponse,
    ChatMessage,
    ChatRequestBody,
    ChatResponse,
    GenerationMetadata,
)
from dermassist.schemas.common import (
    CamelModel,
    ErrorResponse,
    FailureResponse,
    ProviderAttemptInfo,
    SeverityType,
)
from dermassist.schemas.health import HealthResponse, ProvidersResponse, ProviderStatus
from dermassist.schemas.prediction import PredictionResponse

__all__ = [
    "AdviceRequestBody",
    "AdviceResponse",
    "CamelModel",
    "ChatMessage",
    "ChatRequestBody",
    "ChatResponse",
    "ErrorResponse",
    "FailureResponse",
    "GenerationMetadata",
    "HealthResponse",
    "PredictionResponse",
    "ProviderAttemptInfo",
    "ProviderStatus",
    "ProvidersResponse",
    "SeverityType",
]
