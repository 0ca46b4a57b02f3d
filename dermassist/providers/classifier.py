"""Image-classification service adapter (multipart upload)."""

import math
from typing import Any

import structlog

from dermassist.providers.base import (
    ClassificationRequest,
    HttpProviderAdapter,
    ProbeResult,
    RawPrediction,
    match_first,
)
from dermassist.providers.errors import ErrorKind

logger = structlog.get_logger(__name__)

LABEL_KEYS = ("prediction", "predicted_class", "disease", "label")
CONFIDENCE_KEYS = ("confidence", "score", "probability")


def predict_url(base_url: str) -> str:
    """Normalize a configured classifier URL so it targets the predict route."""
    url = base_url.rstrip("/")
    if not url.endswith("/predict"):
        url = f"{url}/predict"
    return url


def health_url(endpoint: str) -> str:
    return endpoint.removesuffix("/predict") + "/health"


def _first_confidence(payload: dict[str, Any]) -> Any:
    for key in CONFIDENCE_KEYS:
        if payload.get(key) is not None:
            return payload[key]
    return None


def match_label_keys(payload: Any) -> tuple[str, Any] | None:
    """``{"prediction" | "predicted_class" | "disease" | "label": ..., "confidence": ...}``"""
    if not isinstance(payload, dict):
        return None
    for key in LABEL_KEYS:
        label = payload.get(key)
        if isinstance(label, str) and label.strip():
            return label, _first_confidence(payload)
    return None


def match_scored_list(payload: Any) -> tuple[str, Any] | None:
    """``[{"label": ..., "score": ...}, ...]``; the highest score wins."""
    if not isinstance(payload, list) or not payload:
        return None
    if not all(isinstance(item, dict) and "label" in item for item in payload):
        return None
    try:
        top = max(payload, key=lambda item: float(_first_confidence(item) or 0.0))
    except (TypeError, ValueError):
        return None
    return match_label_keys(top)


def match_nested_predictions(payload: Any) -> tuple[str, Any] | None:
    """``{"predictions": [{"label": ..., "score": ...}]}``"""
    if isinstance(payload, dict):
        return match_scored_list(payload.get("predictions"))
    return None


def parse_confidence(value: Any) -> float:
    """Read a reported confidence; missing counts as zero. Scale is left untouched."""
    if value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    if isinstance(value, bool):
        raise ValueError("confidence is a boolean")
    confidence = float(value)
    if not math.isfinite(confidence):
        raise ValueError(f"confidence is not finite: {confidence}")
    return confidence


class ClassifierAdapter(HttpProviderAdapter[ClassificationRequest, RawPrediction]):
    """Posts the image as the ``image`` multipart field plus context form fields."""

    prediction_shapes = (match_label_keys, match_scored_list, match_nested_predictions)

    async def invoke(self, request: ClassificationRequest, timeout: float) -> RawPrediction:
        logger.info(
            "Forwarding image to classifier",
            provider=self.provider_id,
            image_bytes=request.size,
            content_type=request.content_type,
        )
        response = await self.request(
            "POST",
            self.descriptor.endpoint,
            files={"image": (request.filename, request.image, request.content_type)},
            data=request.context.form_fields(),
            timeout=timeout,
        )
        body = self.decode_json(response)
        logger.debug("Classifier response", provider=self.provider_id, payload=body)

        matched = match_first(body, self.prediction_shapes)
        if matched is None:
            raise self.error(
                ErrorKind.INVALID_RESPONSE_SHAPE, "Invalid classifier response - no prediction"
            )
        label, raw_confidence = matched
        try:
            confidence = parse_confidence(raw_confidence)
        except (TypeError, ValueError) as e:
            raise self.error(
                ErrorKind.INVALID_RESPONSE_SHAPE, f"Non-numeric confidence: {raw_confidence!r}"
            ) from e

        extras = body if isinstance(body, dict) else {}
        recommendations = extras.get("recommendations")
        return RawPrediction(
            label=label.strip(),
            confidence=confidence,
            payload=body,
            description=extras.get("description"),
            recommendations=list(recommendations) if isinstance(recommendations, list) else None,
            all_predictions=extras.get("all_predictions"),
            model_details=extras.get("model_details"),
        )

    async def probe(self, timeout: float) -> ProbeResult:
        response = await self.request("GET", health_url(self.descriptor.endpoint), timeout=timeout)
        detail = "ok"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("status"):
            detail = str(body["status"])
        return ProbeResult(ok=True, detail=detail)


__all__ = [
    "ClassifierAdapter",
    "health_url",
    "match_label_keys",
    "match_nested_predictions",
    "match_scored_list",
    "parse_confidence",
    "predict_url",
]
