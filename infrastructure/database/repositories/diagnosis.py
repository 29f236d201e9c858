"""Repository for photo diagnoses."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from app.domain.diagnosis import Diagnosis
from app.enums import DiagnosisStatus
from infrastructure.database.ops.diagnosis import DiagnosisOperations


def _to_row(diagnosis: Diagnosis) -> dict[str, Any]:
    return {
        "farmer_id": diagnosis.farmer_id,
        "image_url": diagnosis.image_url,
        "condition": diagnosis.condition.value,
        "confidence": diagnosis.confidence,
        "recommendation": diagnosis.recommendation,
        "cri": diagnosis.cri,
        "coordinates": json.dumps(diagnosis.coordinates.to_dict()) if diagnosis.coordinates else None,
        "status": diagnosis.status.value,
        "environmental_record_id": diagnosis.environmental_record_id,
        "symptoms": diagnosis.symptoms,
        "farmer_message": diagnosis.farmer_message,
    }


@dataclass(frozen=True)
class DiagnosisRepository:
    """Repository facade for diagnosis operations."""

    _backend: DiagnosisOperations

    def create(self, diagnosis: Diagnosis) -> int:
        return self._backend.insert_diagnosis(_to_row(diagnosis))

    def get(self, diagnosis_id: int) -> Diagnosis | None:
        row = self._backend.get_diagnosis(diagnosis_id)
        return Diagnosis.from_row(row) if row else None

    def save(self, diagnosis: Diagnosis, expected_status: DiagnosisStatus | None = None) -> bool:
        """Write back a diagnosis; with ``expected_status`` only if the stored status still matches."""
        if diagnosis.diagnosis_id is None:
            raise ValueError("save requires a persisted diagnosis")
        status = expected_status.value if expected_status else None
        return self._backend.update_diagnosis(diagnosis.diagnosis_id, _to_row(diagnosis), status)

    def for_farmer(self, farmer_id: str, limit: int, offset: int = 0) -> list[Diagnosis]:
        return [Diagnosis.from_row(row) for row in self._backend.list_diagnoses(farmer_id, limit, offset)]

    def count_for_farmer(self, farmer_id: str) -> int:
        return self._backend.count_diagnoses(farmer_id)
