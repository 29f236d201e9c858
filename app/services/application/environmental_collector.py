"""
Environmental Collector
=======================

Pipeline from raw readings to persisted daily records:

    validate  ->  fold into the day record  ->  evaluate + dispatch alerts

``collect()`` runs the pipeline for every registered farm location (or
the configured default location) by pulling the weather and soil feeds.
When the weather feed fails, a fixed fallback reading is folded in only if
that location has no record yet today, so days are never missing and real
readings are never diluted by defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

from app.constants import ReadingDefaults
from app.domain.alerts import DispatchOutcome
from app.domain.environment import DailyEnvironmentalRecord, FarmLocation, reading_from_mapping
from app.domain.validation import ValidationResult, validate_reading
from app.enums import DataSource
from app.utils.time import utc_now, utc_today

if TYPE_CHECKING:
    from app.services.application.alert_service import AlertService
    from app.services.application.environmental_data_service import DailyAggregator
    from app.services.protocols import SoilSensorSource, WeatherSource
    from infrastructure.database.repositories.farm_locations import FarmLocationRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    record: DailyEnvironmentalRecord
    validation: ValidationResult
    alerts: List[DispatchOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record": self.record.to_dict(),
            "validation": {"is_valid": self.validation.is_valid, "errors": list(self.validation.errors)},
            "alerts": [
                {"status": o.status.value, "reason": o.reason, "notification_id": o.notification_id}
                for o in self.alerts
            ],
        }


class EnvironmentalCollector:
    """Runs readings through validation, aggregation and alerting."""

    def __init__(
        self,
        aggregator: "DailyAggregator",
        alert_service: "AlertService",
        weather: Optional["WeatherSource"] = None,
        soil_sensor: Optional["SoilSensorSource"] = None,
        locations: Optional["FarmLocationRepository"] = None,
        default_location: Optional[FarmLocation] = None,
    ) -> None:
        self.aggregator = aggregator
        self.alert_service = alert_service
        self.weather = weather
        self.soil_sensor = soil_sensor
        self.locations = locations
        self.default_location = default_location

    # ------------------------------------------------------------------
    # Single reading
    # ------------------------------------------------------------------

    def ingest(self, raw: Mapping[str, Any], farmer_id: Optional[str]) -> IngestResult:
        """Validate, fold and alert on one raw reading."""
        validation = validate_reading(raw)
        if not validation.is_valid:
            logger.warning("Reading for farmer %s cleaned: %s", farmer_id or "-", "; ".join(validation.errors))

        reading = reading_from_mapping(validation.cleaned)
        record = self.aggregator.fold(reading, farmer_id)
        outcomes = self.alert_service.process_record(record)
        return IngestResult(record=record, validation=validation, alerts=outcomes)

    # ------------------------------------------------------------------
    # Feed collection
    # ------------------------------------------------------------------

    def targets(self) -> List[FarmLocation]:
        registered = self.locations.active() if self.locations is not None else []
        if registered:
            return registered
        return [self.default_location] if self.default_location is not None else []

    def _soil_moisture(self) -> Optional[float]:
        if self.soil_sensor is None:
            return None
        try:
            return self.soil_sensor.fetch().get("soil_moisture")
        except Exception as exc:
            logger.warning("Soil sensor unavailable, moisture will be estimated: %s", exc)
            return None

    def collect_target(self, target: FarmLocation) -> Optional[IngestResult]:
        """Pull the feeds for one location and ingest the combined reading.

        Returns None when the weather feed failed and the day already has a record.
        """
        coordinates = target.coordinates
        try:
            if self.weather is None:
                raise RuntimeError("no weather source configured")
            weather = self.weather.fetch(coordinates.latitude, coordinates.longitude)
        except Exception as exc:
            logger.warning("Weather fetch failed for %s: %s", target.location_key, exc)
            return self._fallback(target)

        soil_moisture = self._soil_moisture()
        raw = {
            "temperature": weather.get("temperature"),
            "humidity": weather.get("humidity"),
            "rainfall": weather.get("rainfall"),
            "soil_moisture": soil_moisture,
            "timestamp": utc_now(),
            "coordinates": coordinates,
            "location_id": target.location_id,
            "data_source": (DataSource.API if soil_moisture is None else DataSource.COMBINED).value,
        }
        return self.ingest(raw, target.farmer_id)

    def _fallback(self, target: FarmLocation) -> Optional[IngestResult]:
        if self.aggregator.find(target.farmer_id, target.location_key, utc_today()) is not None:
            logger.info("Skipping fallback for %s: today's record already exists", target.location_key)
            return None

        logger.warning("Persisting fallback reading for %s", target.location_key)
        raw = {
            "temperature": ReadingDefaults.TEMPERATURE_C,
            "humidity": ReadingDefaults.HUMIDITY_PCT,
            "rainfall": ReadingDefaults.RAINFALL_MM,
            "soil_moisture": ReadingDefaults.SOIL_MOISTURE_PCT,
            "timestamp": utc_now(),
            "coordinates": target.coordinates,
            "location_id": target.location_id,
            "data_source": DataSource.FALLBACK.value,
        }
        return self.ingest(raw, target.farmer_id)

    def refresh(self, target: FarmLocation) -> Optional[IngestResult]:
        """On-demand collection for one location; registers it for scheduled runs."""
        if self.locations is not None and target.farmer_id:
            self.locations.register(target)
        return self.collect_target(target)

    def collect(self) -> Dict[str, Any]:
        """Scheduled entry point: collect every target, isolating failures."""
        summary: Dict[str, Any] = {"targets": 0, "collected": 0, "skipped": 0, "failed": 0}
        for target in self.targets():
            summary["targets"] += 1
            try:
                result = self.collect_target(target)
            except Exception as exc:
                summary["failed"] += 1
                logger.error("Collection failed for %s: %s", target.location_key, exc, exc_info=True)
                continue
            if result is None:
                summary["skipped"] += 1
            else:
                summary["collected"] += 1

        if summary["targets"] == 0:
            logger.warning("No collection targets configured")
        logger.info("Environmental collection finished: %s", summary)
        return summary
