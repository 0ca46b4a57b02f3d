"""Advice and chat request/response schemas."""

from datetime import datetime

from pydantic import AliasChoices, ConfigDict, Field

from dermassist.schemas.common import CamelModel, ProviderKindType


class AdviceRequestBody(CamelModel):
    """Request model for condition advice."""

    model_config = ConfigDict(
        title="Advice request (condition + optional context)",
        json_schema_extra={
            "examples": [
                {
                    "condition": "acne",
                    "symptoms": "red bumps on the cheeks",
                    "severity": "moderate",
                    "duration": "2 weeks",
                    "confidence": 0.82,
                }
            ]
        },
    )

    condition: str = Field(
        ...,
        min_length=1,
        max_length=200,
        validation_alias=AliasChoices("condition", "disease"),
        description="Diagnosed condition name",
    )
    symptoms: str | None = Field(default=None, max_length=2000)
    severity: str | None = Field(default=None, max_length=50)
    duration: str | None = Field(default=None, max_length=100)
    confidence: float | None = Field(
        default=None, ge=0.0, le=100.0, description="Fraction or percentage"
    )


class GenerationMetadata(CamelModel):
    provider_used: ProviderKindType
    provider_id: str
    model: str | None = None
    generation_time_ms: float
    generated_at: datetime


class AdviceResponse(CamelModel):
    """Response model for generated advice."""

    success: bool = True
    advice: str
    metadata: GenerationMetadata


class ChatMessage(CamelModel):
    role: str = Field(..., max_length=20)
    content: str = Field(..., max_length=4000)


class ChatRequestBody(CamelModel):
    """Follow-up question about a condition."""

    message: str = Field(..., min_length=1, max_length=2000)
    condition: str | None = Field(
        default=None,
        max_length=200,
        validation_alias=AliasChoices("condition", "disease"),
    )
    history: list[ChatMessage] = Field(
        default_factory=list,
        validation_alias=AliasChoices("history", "conversationHistory"),
    )


class ChatResponse(CamelModel):
    success: bool = True
    response: str
    metadata: GenerationMetadata
