"""
Diagnosis Domain
================
Image-based diagnoses and their reconciliation with the environmentally
derived CRI.

The reconciler compares the disease the CRI implies (below 50 Early Blight,
above 50 Late Blight, exactly 50 Healthy) with the image classifier's
condition and nudges the CRI towards the image when they disagree:

    CRI-implied   Image          Adjustment (f = confidence/100 * 10)
    Early         Late           min(100, cri + f)
    Late          Early          max(1, cri - f)
    Early/Late    Healthy        cri + (50 - cri) * confidence/100 * 0.5
    Healthy       Early / Late   cri - f / cri + f

An "Unknown" image condition never adjusts.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

from app.constants import CRIModel, Reconciliation
from app.domain.cri import clamp_cri
from app.domain.environment import Coordinates
from app.enums import BlightType, DiagnosisCondition, DiagnosisStatus

PENDING_RECOMMENDATION = "Pending diagnosis. Please wait for analysis."


@dataclass(frozen=True)
class ImageDiagnosis:
    """Result of the image-classification collaborator."""

    condition: DiagnosisCondition
    confidence: float
    recommendation: str = ""
    symptoms: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ImageDiagnosis":
        try:
            condition = DiagnosisCondition(data.get("condition", DiagnosisCondition.UNKNOWN.value))
        except ValueError:
            condition = DiagnosisCondition.UNKNOWN
        return cls(
            condition=condition,
            confidence=clamp_confidence(data.get("confidence", 0)),
            recommendation=str(data.get("recommendation") or ""),
            symptoms=data.get("symptoms") or data.get("signs_and_symptoms"),
        )


@dataclass(frozen=True)
class ReconciliationResult:
    original_cri: float
    adjusted_cri: float
    cri_likelihood: BlightType
    image_condition: DiagnosisCondition
    farmer_message: str = ""

    @property
    def contradiction(self) -> bool:
        return bool(self.farmer_message)

    @property
    def adjusted(self) -> bool:
        return self.adjusted_cri != self.original_cri

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_cri": self.original_cri,
            "adjusted_cri": self.adjusted_cri,
            "cri_likelihood": self.cri_likelihood.value,
            "image_condition": self.image_condition.value,
            "adjusted": self.adjusted,
            "farmer_message": self.farmer_message,
        }


@dataclass
class Diagnosis:
    """One photo submission and, once completed, its classification."""

    farmer_id: str
    image_url: str
    diagnosis_id: int | None = None
    condition: DiagnosisCondition = DiagnosisCondition.PENDING
    confidence: float = 0.0
    recommendation: str = PENDING_RECOMMENDATION
    cri: float = 0.0
    coordinates: Coordinates | None = None
    status: DiagnosisStatus = DiagnosisStatus.VALIDATED
    environmental_record_id: int | None = None
    symptoms: str | None = None
    farmer_message: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_final(self) -> bool:
        return self.status in (DiagnosisStatus.COMPLETED, DiagnosisStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.diagnosis_id,
            "farmer_id": self.farmer_id,
            "image_url": self.image_url,
            "condition": self.condition.value,
            "confidence": self.confidence,
            "recommendation": self.recommendation,
            "cri": self.cri,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "status": self.status.value,
            "environmental_record_id": self.environmental_record_id,
            "symptoms": self.symptoms,
            "farmer_message": self.farmer_message,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Diagnosis":
        row = dict(row)
        coordinates = Coordinates.from_dict(json.loads(row["coordinates"])) if row.get("coordinates") else None
        return cls(
            diagnosis_id=row.get("diagnosis_id"),
            farmer_id=row["farmer_id"],
            image_url=row["image_url"],
            condition=DiagnosisCondition(row.get("condition") or DiagnosisCondition.PENDING.value),
            confidence=float(row.get("confidence") or 0.0),
            recommendation=row.get("recommendation") or "",
            cri=float(row.get("cri") or 0.0),
            coordinates=coordinates,
            status=DiagnosisStatus(row.get("status") or DiagnosisStatus.PENDING.value),
            environmental_record_id=row.get("environmental_record_id"),
            symptoms=row.get("symptoms"),
            farmer_message=row.get("farmer_message"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


def clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if confidence != confidence:  # NaN
        return 0.0
    return min(100.0, max(0.0, confidence))


def cri_likelihood(cri: float) -> BlightType:
    """The disease a CRI value points to, ignoring severity."""
    if cri < CRIModel.BASELINE:
        return BlightType.EARLY_BLIGHT
    if cri > CRIModel.BASELINE:
        return BlightType.LATE_BLIGHT
    return BlightType.HEALTHY


ADJUSTING_NOTE = "The system will adjust the CRI accordingly."
UNCHANGED_NOTE = "The CRI has not been changed."
ALREADY_ADJUSTED_NOTE = (
    "The CRI was already adjusted by an earlier diagnosis since the last reading and has not been changed again."
)


def contradiction_message(
    cri: float,
    likelihood: BlightType,
    condition: DiagnosisCondition,
    note: str = ADJUSTING_NOTE,
) -> str:
    return (
        f"The system's calculated risk index (CRI) suggests a likelihood of {likelihood.value} "
        f"(CRI: {cri}), which contradicts the image analysis result of {condition.value}. {note}"
    )


def _contradicts(likelihood: BlightType, condition: DiagnosisCondition) -> bool:
    if condition in (DiagnosisCondition.UNKNOWN, DiagnosisCondition.PENDING):
        return False
    return likelihood.value != condition.value


def reconcile_cri(cri: float, image: ImageDiagnosis) -> ReconciliationResult:
    """
    Adjust ``cri`` against an image diagnosis.

    Returns the original value untouched (and no message) when the signals
    agree or the image condition is Unknown.
    """
    likelihood = cri_likelihood(cri)
    condition = image.condition

    if not _contradicts(likelihood, condition):
        return ReconciliationResult(cri, cri, likelihood, condition)

    confidence = clamp_confidence(image.confidence) / 100
    factor = confidence * Reconciliation.MAX_SHIFT

    if condition == DiagnosisCondition.HEALTHY:
        adjusted = cri + (CRIModel.BASELINE - cri) * confidence * Reconciliation.TOWARD_NEUTRAL_SCALE
    elif condition == DiagnosisCondition.LATE_BLIGHT:
        adjusted = cri + factor
    else:
        adjusted = cri - factor

    adjusted_cri = clamp_cri(adjusted)
    note = ADJUSTING_NOTE if adjusted_cri != cri else UNCHANGED_NOTE
    return ReconciliationResult(
        original_cri=cri,
        adjusted_cri=adjusted_cri,
        cri_likelihood=likelihood,
        image_condition=condition,
        farmer_message=contradiction_message(cri, likelihood, condition, note),
    )
