"""Classification response validation: confidence scale, threshold, whitelist, severity."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
import math
import re
from typing import Any

import structlog

from dermassist.providers.base import RawPrediction

logger = structlog.get_logger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")

SEVERE_AT = 0.7
MODERATE_AT = 0.4


class Severity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class RejectionReason(str, Enum):
    """Soft rejections: expected outcomes, not system failures."""

    BELOW_THRESHOLD = "below_threshold"
    UNRECOGNIZED_LABEL = "unrecognized_label"


def normalize_confidence(value: float) -> float:
    """Rescale percentages (> 1) to a fraction and clamp to [0, 1]."""
    if math.isnan(value):
        return 0.0
    if value > 1:
        value = value / 100
    return min(max(value, 0.0), 1.0)


def normalize_label(label: str) -> str:
    """Trim, lower-case and drop every non-alphanumeric character. Idempotent."""
    return _NON_ALNUM.sub("", label.strip().lower())


def is_recognized_label(label: str, whitelist: Iterable[str]) -> bool:
    """True when the normalized label equals or contains a normalized whitelist entry."""
    normalized = normalize_label(label)
    if not normalized:
        return False
    for entry in whitelist:
        candidate = normalize_label(entry)
        if candidate and (normalized == candidate or candidate in normalized):
            return True
    return False


def derive_severity(confidence: float) -> Severity:
    if confidence >= SEVERE_AT:
        return Severity.SEVERE
    if confidence >= MODERATE_AT:
        return Severity.MODERATE
    return Severity.MILD


@dataclass(frozen=True)
class ClassificationResult:
    """An accepted prediction. Always satisfies the threshold and the whitelist."""

    label: str
    confidence: float
    severity: Severity
    raw_backend_payload: Any = None
    description: str | None = None
    recommendations: list[str] | None = None
    all_predictions: Any = None
    model_details: Any = None


@dataclass(frozen=True)
class Verdict:
    """Validator output: either ``result`` or ``rejection`` is set."""

    result: ClassificationResult | None = None
    rejection: RejectionReason | None = None
    label: str = ""
    confidence: float = 0.0

    @property
    def accepted(self) -> bool:
        return self.result is not None


class ResponseValidator:
    """Applies the confidence threshold and label whitelist to raw predictions."""

    def __init__(self, threshold: float = 0.15, valid_labels: Iterable[str] = ()) -> None:
        self.threshold = threshold
        self.valid_labels = tuple(valid_labels)

    def validate(self, prediction: RawPrediction) -> Verdict:
        confidence = normalize_confidence(prediction.confidence)
        original_label = prediction.label.strip()

        if confidence < self.threshold:
            logger.info(
                "Prediction below confidence threshold",
                label=original_label,
                confidence=confidence,
                threshold=self.threshold,
            )
            return Verdict(
                rejection=RejectionReason.BELOW_THRESHOLD,
                label=original_label,
                confidence=confidence,
            )

        if not is_recognized_label(original_label, self.valid_labels):
            logger.info("Prediction label not recognized", label=original_label)
            return Verdict(
                rejection=RejectionReason.UNRECOGNIZED_LABEL,
                label=original_label,
                confidence=confidence,
            )

        label = normalize_label(original_label)
        result = ClassificationResult(
            label=label,
            confidence=confidence,
            severity=derive_severity(confidence),
            raw_backend_payload=prediction.payload,
            description=prediction.description,
            recommendations=prediction.recommendations,
            all_predictions=prediction.all_predictions,
            model_details=prediction.model_details,
        )
        return Verdict(result=result, label=label, confidence=confidence)


__all__ = [
    "ClassificationResult",
    "RejectionReason",
    "ResponseValidator",
    "Severity",
    "Verdict",
    "derive_severity",
    "is_recognized_label",
    "normalize_confidence",
    "normalize_label",
]
