"""Image prediction endpoint."""

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
import structlog

from dermassist.api.deps import get_orchestrator
from dermassist.api.responses import failure_response
from dermassist.providers.base import ClassificationRequest, SymptomContext
from dermassist.schemas import PredictionResponse
from dermassist.services.orchestrator import (
    DEFAULT_RECOMMENDATIONS,
    ClassificationOutcome,
    RequestOrchestrator,
)
from dermassist.services.validation import RejectionReason

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Prediction"])


def _to_response(outcome: ClassificationOutcome) -> PredictionResponse:
    if outcome.rejection is not None:
        return PredictionResponse(
            success=False,
            prediction=outcome.label,
            confidence=outcome.confidence,
            below_threshold=outcome.rejection is RejectionReason.BELOW_THRESHOLD or None,
            invalid_class=outcome.rejection is RejectionReason.UNRECOGNIZED_LABEL or None,
            message=outcome.message,
            provider=outcome.provider,
        )

    result = outcome.result
    return PredictionResponse(
        success=True,
        prediction=result.label,
        confidence=result.confidence,
        severity=result.severity.value,
        message=outcome.message,
        description=result.description or f"Detected: {result.label}",
        recommendations=result.recommendations or list(DEFAULT_RECOMMENDATIONS),
        all_predictions=result.all_predictions,
        model_details=result.model_details,
        provider=outcome.provider,
    )


@router.post(
    "/predict",
    response_model=PredictionResponse,
    response_model_exclude_none=True,
    summary="Classify Skin Image",
    description=(
        "Forward an image and symptom context to the classification service. "
        "Low-confidence or unrecognized predictions come back with success=false "
        "and belowThreshold or invalidClass set."
    ),
    responses={
        200: {"description": "Prediction accepted or softly rejected"},
        400: {"description": "Missing or unsupported image"},
        413: {"description": "Image too large"},
        503: {"description": "No classification service available"},
    },
)
async def predict(
    request: Request,
    image: UploadFile | None = File(default=None, description="Skin image (JPG/PNG)"),
    symptoms: str = Form(default=""),
    duration: str = Form(default=""),
    severity: str = Form(default=""),
    age: str = Form(default=""),
    location: str = Form(default=""),
    spreading: str = Form(default=""),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> PredictionResponse | JSONResponse:
    """Classify an uploaded image and validate the prediction."""
    # Never buffer more than one byte past the size limit.
    limit = orchestrator.max_image_bytes + 1
    data = await image.read(limit) if image is not None else b""
    classification = ClassificationRequest(
        image=data,
        filename=(image.filename if image is not None else None) or "upload.jpg",
        content_type=(image.content_type if image is not None else None) or "image/jpeg",
        context=SymptomContext(
            symptoms=symptoms,
            duration=duration,
            severity=severity,
            extra={"age": age, "location": location, "spreading": spreading},
        ),
    )
    logger.info(
        "Prediction request received",
        image_bytes=classification.size,
        content_type=classification.content_type,
        has_symptoms=bool(symptoms),
    )

    outcome = await orchestrator.classify(classification)
    if outcome.error is not None:
        status_code = None
        if classification.size > orchestrator.max_image_bytes:
            status_code = 413
        return failure_response(outcome, status_code)
    return _to_response(outcome)
