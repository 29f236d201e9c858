"""Repository for daily environmental records."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from typing import Any

from app.domain.environment import DailyEnvironmentalRecord, record_key
from infrastructure.database.ops.environment import EnvironmentOperations


def _to_row(record: DailyEnvironmentalRecord) -> dict[str, Any]:
    return {
        "record_key": record.key,
        "farmer_id": record.farmer_id,
        "day": record.day.isoformat(),
        "location_key": record.location_key,
        "location_id": record.location_id,
        "latitude": record.coordinates.latitude if record.coordinates else None,
        "longitude": record.coordinates.longitude if record.coordinates else None,
        "readings": json.dumps(list(record.readings)),
        "temperature": record.temperature,
        "humidity": record.humidity,
        "rainfall": record.rainfall,
        "soil_moisture": record.soil_moisture,
        "cri": record.cri,
        "risk_level": record.risk_level.value,
        "blight_type": record.blight_type.value,
        "percentage_changes": json.dumps(record.percentage_changes),
        "data_source": record.data_source.value,
        "adjusted_by_diagnosis_id": record.adjusted_by_diagnosis_id,
    }


def _from_row(row: dict[str, Any] | None) -> DailyEnvironmentalRecord | None:
    return DailyEnvironmentalRecord.from_row(row) if row else None


@dataclass(frozen=True)
class EnvironmentalDataRepository:
    """Repository facade mapping ``EnvironmentalDaily`` rows to domain records."""

    _backend: EnvironmentOperations

    def get(self, record_id: int) -> DailyEnvironmentalRecord | None:
        return _from_row(self._backend.get_environmental_record(record_id))

    def find(self, farmer_id: str | None, location_key: str, day: date) -> DailyEnvironmentalRecord | None:
        return _from_row(self._backend.get_environmental_record_by_key(record_key(farmer_id, location_key, day)))

    def insert(self, record: DailyEnvironmentalRecord) -> int:
        """Insert a new record; raises ConflictError if the day already exists."""
        return self._backend.insert_environmental_record(_to_row(record))

    def compare_and_swap(self, record: DailyEnvironmentalRecord) -> bool:
        """Persist ``record`` only if the stored row is still at ``record.version``."""
        if record.record_id is None:
            raise ValueError("compare_and_swap requires a persisted record")
        return self._backend.update_environmental_record(record.record_id, record.version, _to_row(record))

    def latest(
        self,
        farmer_id: str | None,
        location_key: str | None = None,
        on_or_before: date | None = None,
    ) -> DailyEnvironmentalRecord | None:
        cutoff = on_or_before.isoformat() if on_or_before else None
        return _from_row(self._backend.get_latest_environmental_record(farmer_id, location_key, cutoff))

    def in_range(
        self,
        farmer_id: str | None,
        start: date,
        end: date,
        location_key: str | None = None,
    ) -> list[DailyEnvironmentalRecord]:
        rows = self._backend.list_environmental_records(farmer_id, start.isoformat(), end.isoformat(), location_key)
        return [DailyEnvironmentalRecord.from_row(row) for row in rows]
