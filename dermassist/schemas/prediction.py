"""Image prediction response schema."""

from typing import Any

from pydantic import ConfigDict, Field

from dermassist.schemas.common import CamelModel, SeverityType


class PredictionResponse(CamelModel):
    """Outcome of an image classification.

    ``success`` is false for soft rejections; ``belowThreshold`` or
    ``invalidClass`` says which one.
    """

    model_config = ConfigDict(
        title="Prediction (label, confidence, severity)",
        json_schema_extra={
            "examples": [
                {
                    "success": True,
                    "prediction": "acne",
                    "confidence": 0.82,
                    "severity": "severe",
                    "message": "Prediction successful",
                },
                {
                    "success": False,
                    "prediction": "eczema",
                    "confidence": 0.05,
                    "belowThreshold": True,
                    "message": "Confidence too low",
                },
            ]
        },
    )

    success: bool
    prediction: str | None = Field(default=None, description="Normalized condition label")
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    severity: SeverityType | None = None
    below_threshold: bool | None = None
    invalid_class: bool | None = None
    message: str
    description: str | None = None
    recommendations: list[str] | None = None
    all_predictions: Any = None
    model_details: Any = None
    provider: str | None = None
