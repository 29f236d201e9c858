"""
Daily Aggregator
================

Maintains one :class:`DailyEnvironmentalRecord` per (farmer, location, UTC
day). Every write is a load → pure fold → compare-and-swap cycle: the
record's ``version`` column must still match what was loaded, otherwise
the cycle restarts from the freshest row. A racing first insert shows up
as a unique-key conflict and is retried as an update.

The same discipline protects the reconciliation overwrite of the CRI.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from dateutil.relativedelta import relativedelta

from app.constants import Persistence
from app.domain.cri import classify_cri
from app.domain.diagnosis import (
    ALREADY_ADJUSTED_NOTE,
    ImageDiagnosis,
    ReconciliationResult,
    contradiction_message,
    reconcile_cri,
)
from app.domain.environment import (
    DailyEnvironmentalRecord,
    EnvironmentalReading,
    compute_percentage_changes,
    fold_reading,
    percentage_change,
)
from app.domain.exceptions import ConflictError, NotFoundError, ValidationError
from app.domain.insights import FarmInsights, build_insights
from app.enums import ChangePeriod
from app.utils.time import utc_today

if TYPE_CHECKING:
    from infrastructure.database.repositories.environment import EnvironmentalDataRepository

logger = logging.getLogger(__name__)


def comparison_days(day: date) -> Dict[ChangePeriod, date]:
    """The days a record is compared against: yesterday, a week ago, a calendar month ago."""
    return {
        ChangePeriod.DAILY: day - timedelta(days=1),
        ChangePeriod.WEEKLY: day - timedelta(days=7),
        ChangePeriod.MONTHLY: day - relativedelta(months=1),
    }


class DailyAggregator:
    """Folds readings into daily records and answers history queries."""

    def __init__(
        self,
        repo: "EnvironmentalDataRepository",
        *,
        max_attempts: int = Persistence.MAX_WRITE_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._repo = repo
        self._max_attempts = max_attempts

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def fold(self, reading: EnvironmentalReading, farmer_id: Optional[str]) -> DailyEnvironmentalRecord:
        """
        Fold ``reading`` into its day record and persist the result.

        Raises:
            ConflictError: every attempt lost the race to another writer
        """
        loc_key = reading.location_key
        day = reading.day

        for attempt in range(1, self._max_attempts + 1):
            existing = self._repo.find(farmer_id, loc_key, day)
            candidate = fold_reading(existing, reading, farmer_id)
            candidate = replace(candidate, percentage_changes=self._percentage_changes(candidate))

            if existing is None:
                try:
                    record_id = self._repo.insert(candidate)
                except ConflictError:
                    logger.debug("Day record %s created concurrently (attempt %d)", candidate.key, attempt)
                    continue
                logger.info("Created daily record %s (cri=%.2f %s)", candidate.key, candidate.cri, candidate.risk_level)
                return replace(candidate, record_id=record_id, version=1)

            if self._repo.compare_and_swap(candidate):
                logger.debug(
                    "Folded reading into %s (%d readings, cri=%.2f)", candidate.key, len(candidate.readings), candidate.cri
                )
                return replace(candidate, version=candidate.version + 1)

            logger.debug("Version conflict on %s (attempt %d)", candidate.key, attempt)

        logger.error("Giving up folding reading into %s/%s/%s after %d attempts", farmer_id, loc_key, day, self._max_attempts)
        raise ConflictError(
            "Daily record is being updated concurrently",
            detail={"farmer_id": farmer_id, "location_key": loc_key, "day": day.isoformat()},
        )

    def apply_reconciliation(
        self,
        record_id: int,
        image: ImageDiagnosis,
        diagnosis_id: int,
    ) -> Tuple[DailyEnvironmentalRecord, ReconciliationResult]:
        """
        Reconcile the stored CRI of ``record_id`` against an image diagnosis.

        The adjusted CRI overwrites the record (with risk level and blight type
        re-derived) at most once per fold: a record already adjusted since its
        last fold keeps its value, and the returned result reports that stored
        value with no adjustment.
        """
        return self._update_with_retry(record_id, lambda record: self._reconciled(record, image, diagnosis_id))

    def _reconciled(
        self,
        record: DailyEnvironmentalRecord,
        image: ImageDiagnosis,
        diagnosis_id: int,
    ) -> Tuple[Optional[DailyEnvironmentalRecord], ReconciliationResult]:
        result = reconcile_cri(record.cri, image)
        if not result.adjusted:
            return None, result
        if record.is_adjusted:
            logger.info(
                "Record %s already adjusted by diagnosis %s; leaving CRI at %.2f",
                record.key,
                record.adjusted_by_diagnosis_id,
                record.cri,
            )
            unchanged = replace(
                result,
                adjusted_cri=record.cri,
                farmer_message=contradiction_message(
                    record.cri, result.cri_likelihood, result.image_condition, ALREADY_ADJUSTED_NOTE
                ),
            )
            return None, unchanged
        risk_level, blight_type = classify_cri(result.adjusted_cri)
        updated = replace(
            record,
            cri=result.adjusted_cri,
            risk_level=risk_level,
            blight_type=blight_type,
            adjusted_by_diagnosis_id=diagnosis_id,
        )
        return updated, result

    def _update_with_retry(
        self,
        record_id: int,
        transform: Callable[[DailyEnvironmentalRecord], Tuple[Optional[DailyEnvironmentalRecord], Any]],
    ) -> Tuple[DailyEnvironmentalRecord, Any]:
        for attempt in range(1, self._max_attempts + 1):
            record = self._repo.get(record_id)
            if record is None:
                raise NotFoundError(f"Environmental record {record_id} not found")

            updated, result = transform(record)
            if updated is None:
                return record, result
            if self._repo.compare_and_swap(updated):
                logger.info("Record %s CRI %.2f -> %.2f", record.key, record.cri, updated.cri)
                return replace(updated, version=updated.version + 1), result

            logger.debug("Version conflict adjusting record %s (attempt %d)", record_id, attempt)

        logger.error("Giving up adjusting record %s after %d attempts", record_id, self._max_attempts)
        raise ConflictError("Daily record is being updated concurrently", detail={"record_id": record_id})

    def _percentage_changes(self, record: DailyEnvironmentalRecord) -> Dict[str, Dict[str, float]]:
        comparisons = {
            period: self._repo.find(record.farmer_id, record.location_key, day)
            for period, day in comparison_days(record.day).items()
        }
        return compute_percentage_changes(record, comparisons)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_id(self, record_id: int) -> Optional[DailyEnvironmentalRecord]:
        return self._repo.get(record_id)

    def get(self, record_id: int) -> DailyEnvironmentalRecord:
        record = self.find_by_id(record_id)
        if record is None:
            raise NotFoundError(f"Environmental record {record_id} not found")
        return record

    def find(self, farmer_id: Optional[str], location_key: str, day: date) -> Optional[DailyEnvironmentalRecord]:
        return self._repo.find(farmer_id, location_key, day)

    def latest(
        self,
        farmer_id: Optional[str],
        location_key: Optional[str] = None,
        on_or_before: Optional[date] = None,
    ) -> Optional[DailyEnvironmentalRecord]:
        return self._repo.latest(farmer_id, location_key, on_or_before)

    def records_between(
        self,
        farmer_id: Optional[str],
        start: date,
        end: date,
        location_key: Optional[str] = None,
    ) -> List[DailyEnvironmentalRecord]:
        if end < start:
            raise ValidationError("end date must not be before start date", detail={"start": start.isoformat(), "end": end.isoformat()})
        return self._repo.in_range(farmer_id, start, end, location_key)

    def cri_trend(
        self,
        farmer_id: Optional[str],
        days: int = 7,
        location_key: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Summarize the CRI over the last ``days`` days (inclusive of today).

        Without a location the trend follows the location of the farmer's
        most recent record.
        """
        if days < 1:
            raise ValidationError("days must be at least 1", detail={"days": days})

        end = today or utc_today()
        start = end - timedelta(days=days - 1)

        if location_key is None:
            latest = self._repo.latest(farmer_id, on_or_before=end)
            location_key = latest.location_key if latest else None

        records = self._repo.in_range(farmer_id, start, end, location_key) if location_key else []
        points = [
            {
                "date": r.day.isoformat(),
                "cri": r.cri,
                "risk_level": r.risk_level.value,
                "blight_type": r.blight_type.value,
            }
            for r in records
        ]

        summary: Dict[str, Any] = {
            "farmer_id": farmer_id,
            "location_key": location_key,
            "start": start.isoformat(),
            "end": end.isoformat(),
            "points": points,
            "first_cri": None,
            "last_cri": None,
            "change_pct": None,
            "direction": "stable",
        }
        if records:
            first, last = records[0].cri, records[-1].cri
            summary.update(first_cri=first, last_cri=last, change_pct=percentage_change(last, first))
            if last > first:
                summary["direction"] = "rising"
            elif last < first:
                summary["direction"] = "falling"
        return summary

    def insights(
        self,
        farmer_id: Optional[str],
        location_key: Optional[str] = None,
        today: Optional[date] = None,
    ) -> FarmInsights:
        """
        Dashboard statistics, insights and recommendations from the farmer's
        latest record and the week leading up to it.

        Raises:
            NotFoundError: the farmer has no record on or before ``today``
        """
        end = today or utc_today()
        latest = self._repo.latest(farmer_id, location_key, on_or_before=end)
        if latest is None:
            raise NotFoundError(
                "No environmental data found. Please refresh environmental data first.",
                detail={"farmer_id": farmer_id},
            )
        week = self._repo.in_range(farmer_id, end - timedelta(days=7), end, latest.location_key)
        return build_insights(latest, week or [latest])
