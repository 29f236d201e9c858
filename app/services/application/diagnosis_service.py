"""
Diagnosis Service
=================

Lifecycle of photo diagnoses:

    submit  ->  status "validated", condition "Pending"
    diagnose / complete_with_result  ->  classify, reconcile CRI, "completed"

Reconciliation uses the farmer's daily record for the same day, else the
most recent one. The Diagnosis row keeps the CRI as it was before the
adjustment; the daily record receives the adjusted value.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from app.constants import Pagination
from app.domain.alerts import DispatchOutcome
from app.domain.diagnosis import Diagnosis, ImageDiagnosis, PENDING_RECOMMENDATION
from app.domain.environment import Coordinates, DailyEnvironmentalRecord
from app.domain.exceptions import ConflictError, ExternalServiceError, NotFoundError, ValidationError
from app.enums import DiagnosisCondition, DiagnosisStatus, NotificationType, Priority
from app.utils.time import utc_today

if TYPE_CHECKING:
    from app.services.application.environmental_data_service import DailyAggregator
    from app.services.protocols import ImageClassifier, NotificationDispatcher
    from infrastructure.database.repositories.diagnosis import DiagnosisRepository

logger = logging.getLogger(__name__)


class DiagnosisService:
    """Creates diagnoses, runs classification and reconciles the CRI."""

    def __init__(
        self,
        diagnosis_repo: "DiagnosisRepository",
        aggregator: "DailyAggregator",
        dispatcher: Optional["NotificationDispatcher"] = None,
        classifier: Optional["ImageClassifier"] = None,
    ):
        self.diagnosis_repo = diagnosis_repo
        self.aggregator = aggregator
        self.dispatcher = dispatcher
        self.classifier = classifier

    # --- Lifecycle ---------------------------------------------------------

    def submit(self, farmer_id: str, image_url: str, coordinates: Optional[Coordinates] = None) -> Diagnosis:
        """Register a photo that passed the content check."""
        if not farmer_id:
            raise ValidationError("farmer_id is required")
        if not image_url:
            raise ValidationError("image_url is required")

        diagnosis = Diagnosis(
            farmer_id=farmer_id,
            image_url=image_url,
            coordinates=coordinates,
            condition=DiagnosisCondition.PENDING,
            recommendation=PENDING_RECOMMENDATION,
            status=DiagnosisStatus.VALIDATED,
        )
        diagnosis.diagnosis_id = self.diagnosis_repo.create(diagnosis)
        logger.info("Diagnosis %s submitted for farmer %s", diagnosis.diagnosis_id, farmer_id)
        return diagnosis

    def diagnose(self, diagnosis_id: int, image_bytes: bytes) -> Dict[str, Any]:
        """Classify the image with the configured classifier, then reconcile."""
        if self.classifier is None:
            raise ExternalServiceError("No image classifier configured")

        diagnosis = self._pending(diagnosis_id)
        record = self._context_record(diagnosis.farmer_id)
        try:
            image = self.classifier.classify(image_bytes, record.cri)
        except Exception as exc:
            logger.error("Image classification failed for diagnosis %s: %s", diagnosis_id, exc, exc_info=True)
            diagnosis.status = DiagnosisStatus.FAILED
            self.diagnosis_repo.save(diagnosis, expected_status=DiagnosisStatus.VALIDATED)
            raise ExternalServiceError("Image classification failed", detail={"diagnosis_id": diagnosis_id}) from exc

        return self._complete(diagnosis, record, image)

    def complete_with_result(self, diagnosis_id: int, image: ImageDiagnosis) -> Dict[str, Any]:
        """Complete a diagnosis from an already computed classification."""
        diagnosis = self._pending(diagnosis_id)
        record = self._context_record(diagnosis.farmer_id)
        return self._complete(diagnosis, record, image)

    def _pending(self, diagnosis_id: int) -> Diagnosis:
        diagnosis = self.get(diagnosis_id)
        if diagnosis.status != DiagnosisStatus.VALIDATED:
            raise ConflictError(
                f"Diagnosis {diagnosis_id} is {diagnosis.status.value}, not awaiting analysis",
                detail={"status": diagnosis.status.value},
            )
        return diagnosis

    def _context_record(self, farmer_id: str) -> DailyEnvironmentalRecord:
        """Same-day record for the farmer, else the most recent one."""
        record = self.aggregator.latest(farmer_id, on_or_before=utc_today()) or self.aggregator.latest(farmer_id)
        if record is None:
            raise NotFoundError("No environmental data found. Please refresh environmental data first.")
        return record

    def _complete(self, diagnosis: Diagnosis, record: DailyEnvironmentalRecord, image: ImageDiagnosis) -> Dict[str, Any]:
        adjusted_record, result = self.aggregator.apply_reconciliation(
            record.record_id, image, diagnosis.diagnosis_id
        )

        completed = replace(
            diagnosis,
            condition=image.condition,
            confidence=image.confidence,
            recommendation=image.recommendation,
            symptoms=image.symptoms,
            cri=result.original_cri,
            environmental_record_id=adjusted_record.record_id,
            farmer_message=result.farmer_message or None,
            status=DiagnosisStatus.COMPLETED,
        )
        if not self.diagnosis_repo.save(completed, expected_status=DiagnosisStatus.VALIDATED):
            raise ConflictError(f"Diagnosis {diagnosis.diagnosis_id} was completed concurrently")

        if result.contradiction:
            logger.info(
                "Diagnosis %s: image says %s, CRI implied %s; CRI %.2f -> %.2f",
                diagnosis.diagnosis_id,
                image.condition,
                result.cri_likelihood,
                result.original_cri,
                result.adjusted_cri,
            )

        self.notify_result(completed)
        return {
            "diagnosis": completed.to_dict(),
            "farmer_message": result.farmer_message,
            "reconciliation": result.to_dict(),
            "environmental_data": adjusted_record.to_dict(),
        }

    # --- Notifications -----------------------------------------------------

    def notify_result(self, diagnosis: Diagnosis) -> DispatchOutcome:
        """Best-effort "diagnosis" notification for a completed diagnosis."""
        if self.dispatcher is None:
            return DispatchOutcome.skipped("no dispatcher configured")
        if diagnosis.status != DiagnosisStatus.COMPLETED:
            return DispatchOutcome.skipped("diagnosis not completed")

        title = "Plant Diagnosis Results Available"
        body = "Your plant diagnosis is complete. "
        priority = Priority.MEDIUM
        if diagnosis.condition == DiagnosisCondition.HEALTHY:
            body += "Good news! Your plant appears to be healthy."
        elif diagnosis.condition in (DiagnosisCondition.EARLY_BLIGHT, DiagnosisCondition.LATE_BLIGHT):
            title = f"{diagnosis.condition.value} Detected in Your Plant"
            body += (
                f"We've identified {diagnosis.condition.value} with {diagnosis.confidence:.1f}% confidence. "
                f"{diagnosis.recommendation}"
            )
            priority = Priority.HIGH
        else:
            body += f"Condition: {diagnosis.condition.value}. {diagnosis.recommendation}"

        try:
            return self.dispatcher.send(
                diagnosis.farmer_id,
                title,
                body.strip(),
                NotificationType.DIAGNOSIS,
                priority,
                {
                    "diagnosis_id": diagnosis.diagnosis_id,
                    "condition": diagnosis.condition.value,
                    "image_url": diagnosis.image_url,
                },
            )
        except Exception as exc:
            logger.error("Failed to send diagnosis notification %s: %s", diagnosis.diagnosis_id, exc, exc_info=True)
            return DispatchOutcome.failed(str(exc))

    # --- Queries -----------------------------------------------------------

    def get(self, diagnosis_id: int) -> Diagnosis:
        diagnosis = self.diagnosis_repo.get(diagnosis_id)
        if diagnosis is None:
            raise NotFoundError(f"Diagnosis {diagnosis_id} not found")
        return diagnosis

    def with_environment(self, diagnosis: Diagnosis) -> Dict[str, Any]:
        """Serialize a diagnosis together with a summary of its linked daily record."""
        entry = diagnosis.to_dict()
        record = None
        if diagnosis.environmental_record_id is not None:
            record = self.aggregator.find_by_id(diagnosis.environmental_record_id)
        entry["environmental_data"] = _environment_summary(record) if record else None
        return entry

    def history(self, farmer_id: str, limit: int = Pagination.DEFAULT_LIMIT, offset: int = 0) -> Dict[str, Any]:
        """Newest-first diagnoses with their linked environmental record."""
        if limit < 1 or limit > Pagination.MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {Pagination.MAX_LIMIT}")
        if offset < 0:
            raise ValidationError("offset must not be negative")

        items: List[Dict[str, Any]] = [
            self.with_environment(diagnosis)
            for diagnosis in self.diagnosis_repo.for_farmer(farmer_id, limit, offset)
        ]
        return {
            "diagnoses": items,
            "pagination": {
                "total": self.diagnosis_repo.count_for_farmer(farmer_id),
                "limit": limit,
                "offset": offset,
            },
        }


def _environment_summary(record: DailyEnvironmentalRecord) -> Dict[str, Any]:
    return {
        "date": record.day.isoformat(),
        "cri": record.cri,
        "risk_level": record.risk_level.value,
        "temperature": record.temperature,
        "humidity": record.humidity,
        "rainfall": record.rainfall,
        "soil_moisture": record.soil_moisture,
    }
