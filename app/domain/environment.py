"""
Environmental Domain Models
===========================
Readings, daily aggregate records and the pure folding / percentage-change
logic behind the daily aggregator.

A daily record exists once per (farmer, location, UTC day). Folding a
reading never mutates the loaded record: it returns a new record whose
averages, rainfall total and CRI are recomputed from every reading so far.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from app.constants import Persistence
from app.domain.cri import compute_cri
from app.enums import BlightType, ChangePeriod, DataSource, RiskLevel
from app.utils.time import coerce_date, coerce_datetime, day_of, utc_now

TRACKED_METRICS = ("temperature", "humidity", "rainfall", "soil_moisture", "cri")

NO_FARMER_KEY = "-"


@dataclass(frozen=True)
class Coordinates:
    """Geographic position of a field."""

    latitude: float
    longitude: float

    def key(self) -> str:
        places = Persistence.COORDINATE_DECIMALS
        return f"{round(self.latitude, places):.{places}f},{round(self.longitude, places):.{places}f}"

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Coordinates | None":
        if not data:
            return None
        lat = data.get("latitude", data.get("lat"))
        lon = data.get("longitude", data.get("lon"))
        if lat is None or lon is None:
            return None
        return cls(latitude=float(lat), longitude=float(lon))


@dataclass(frozen=True)
class EnvironmentalReading:
    """One combined weather + soil observation (not persisted on its own)."""

    temperature: float | None
    humidity: float | None
    rainfall: float | None = 0.0
    soil_moisture: float | None = None
    timestamp: datetime = field(default_factory=utc_now)
    coordinates: Coordinates | None = None
    location_id: str | None = None
    data_source: DataSource = DataSource.COMBINED

    @property
    def day(self) -> date:
        return day_of(self.timestamp)

    @property
    def location_key(self) -> str:
        return location_key(self.location_id, self.coordinates)

    def to_sample(self) -> dict[str, Any]:
        """The subset stored inside a daily record."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "temperature": self.temperature,
            "humidity": self.humidity,
            "rainfall": self.rainfall,
            "soil_moisture": self.soil_moisture,
        }


def location_key(location_id: str | None, coordinates: Coordinates | None) -> str:
    """Explicit location id when given, otherwise rounded coordinates."""
    if location_id:
        return str(location_id)
    if coordinates is not None:
        return coordinates.key()
    return "default-location"


def record_key(farmer_id: str | None, loc_key: str, day: date) -> str:
    return f"{farmer_id or NO_FARMER_KEY}|{loc_key}|{day.isoformat()}"


@dataclass(frozen=True)
class FarmLocation:
    """A place the scheduler collects readings for."""

    farmer_id: str | None
    coordinates: Coordinates
    location_id: str | None = None

    @property
    def location_key(self) -> str:
        return location_key(self.location_id, self.coordinates)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "FarmLocation":
        return cls(
            farmer_id=row["farmer_id"],
            coordinates=Coordinates(float(row["latitude"]), float(row["longitude"])),
            location_id=row.get("location_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "farmer_id": self.farmer_id,
            "location_id": self.location_id,
            "location_key": self.location_key,
            "coordinates": self.coordinates.to_dict(),
        }


@dataclass(frozen=True)
class DailyEnvironmentalRecord:
    """Aggregated readings and derived risk for one farmer/location/day."""

    farmer_id: str | None
    day: date
    location_key: str
    readings: tuple[dict[str, Any], ...]
    temperature: float
    humidity: float
    rainfall: float
    soil_moisture: float | None
    cri: float
    risk_level: RiskLevel
    blight_type: BlightType
    coordinates: Coordinates | None = None
    location_id: str | None = None
    percentage_changes: dict[str, dict[str, float]] = field(default_factory=dict)
    data_source: DataSource = DataSource.COMBINED
    adjusted_by_diagnosis_id: int | None = None
    record_id: int | None = None
    version: int = 0
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def key(self) -> str:
        return record_key(self.farmer_id, self.location_key, self.day)

    @property
    def is_adjusted(self) -> bool:
        return self.adjusted_by_diagnosis_id is not None

    def metric(self, name: str) -> float | None:
        return getattr(self, name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.record_id,
            "farmer_id": self.farmer_id,
            "date": self.day.isoformat(),
            "location_id": self.location_id,
            "location_key": self.location_key,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "readings": list(self.readings),
            "temperature": self.temperature,
            "humidity": self.humidity,
            "rainfall": self.rainfall,
            "soil_moisture": self.soil_moisture,
            "cri": self.cri,
            "risk_level": self.risk_level.value,
            "blight_type": self.blight_type.value,
            "percentage_changes": self.percentage_changes,
            "data_source": self.data_source.value,
            "adjusted_by_diagnosis_id": self.adjusted_by_diagnosis_id,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DailyEnvironmentalRecord":
        """Build from an ``EnvironmentalDaily`` row (sqlite3.Row or dict)."""
        row = dict(row)
        coordinates = None
        if row.get("latitude") is not None and row.get("longitude") is not None:
            coordinates = Coordinates(float(row["latitude"]), float(row["longitude"]))
        return cls(
            record_id=row.get("record_id"),
            farmer_id=row.get("farmer_id"),
            day=coerce_date(row["day"]),
            location_key=row["location_key"],
            location_id=row.get("location_id"),
            coordinates=coordinates,
            readings=tuple(json.loads(row.get("readings") or "[]")),
            temperature=row["temperature"],
            humidity=row["humidity"],
            rainfall=row["rainfall"],
            soil_moisture=row.get("soil_moisture"),
            cri=row["cri"],
            risk_level=RiskLevel(row["risk_level"]),
            blight_type=BlightType(row["blight_type"]),
            percentage_changes=json.loads(row.get("percentage_changes") or "{}"),
            data_source=DataSource(row.get("data_source") or DataSource.COMBINED.value),
            adjusted_by_diagnosis_id=row.get("adjusted_by_diagnosis_id"),
            version=int(row.get("version") or 0),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


# ---------------------------------------------------------------------------
# Folding
# ---------------------------------------------------------------------------


def mean_ignoring_none(values: Iterable[float | None]) -> float | None:
    present = [float(v) for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def _merge_source(current: DataSource, incoming: DataSource) -> DataSource:
    if current == incoming:
        return current
    if current == DataSource.FALLBACK:
        return incoming
    if incoming == DataSource.FALLBACK:
        return current
    return DataSource.COMBINED


def fold_reading(
    existing: DailyEnvironmentalRecord | None,
    reading: EnvironmentalReading,
    farmer_id: str | None,
) -> DailyEnvironmentalRecord:
    """
    Return the record that results from adding ``reading`` to ``existing``.

    Temperature, humidity and soil moisture become means over the non-null
    readings, rainfall becomes the sum, and the CRI is recomputed from the
    new aggregates. Percentage changes are carried over untouched; the
    aggregator refreshes them after folding. A fold always clears any
    reconciliation adjustment on the record.
    """
    sample = reading.to_sample()

    if existing is None:
        readings: tuple[dict[str, Any], ...] = (sample,)
        base = None
    else:
        readings = existing.readings + (sample,)
        base = existing

    temperature = mean_ignoring_none(r.get("temperature") for r in readings)
    humidity = mean_ignoring_none(r.get("humidity") for r in readings)
    soil_moisture = mean_ignoring_none(r.get("soil_moisture") for r in readings)
    rainfall = sum(float(r.get("rainfall") or 0.0) for r in readings)

    if temperature is None or humidity is None:
        raise ValueError("cannot aggregate a day without temperature and humidity readings")

    result = compute_cri(temperature, humidity, rainfall, soil_moisture)

    if base is None:
        return DailyEnvironmentalRecord(
            farmer_id=farmer_id,
            day=reading.day,
            location_key=reading.location_key,
            location_id=reading.location_id,
            coordinates=reading.coordinates,
            readings=readings,
            temperature=temperature,
            humidity=humidity,
            rainfall=rainfall,
            soil_moisture=soil_moisture,
            cri=result.cri,
            risk_level=result.risk_level,
            blight_type=result.blight_type,
            data_source=reading.data_source,
        )

    return replace(
        base,
        readings=readings,
        temperature=temperature,
        humidity=humidity,
        rainfall=rainfall,
        soil_moisture=soil_moisture,
        cri=result.cri,
        risk_level=result.risk_level,
        blight_type=result.blight_type,
        data_source=_merge_source(base.data_source, reading.data_source),
        adjusted_by_diagnosis_id=None,
    )


# ---------------------------------------------------------------------------
# Percentage changes
# ---------------------------------------------------------------------------


def percentage_change(new_value: float | None, old_value: float | None) -> float | None:
    """
    ``(new - old) / |old| * 100``.

    An old value of zero yields 100 when the new value is positive and 0
    otherwise. Returns None when either side is unknown.
    """
    if new_value is None or old_value is None:
        return None
    if old_value == 0:
        return 100.0 if new_value > 0 else 0.0
    return (new_value - old_value) / abs(old_value) * 100


def compute_percentage_changes(
    record: DailyEnvironmentalRecord,
    comparisons: Mapping[ChangePeriod, DailyEnvironmentalRecord | None],
) -> dict[str, dict[str, float]]:
    """Build the ``{period: {metric: pct}}`` block; missing periods are omitted."""
    changes: dict[str, dict[str, float]] = {}
    for period in ChangePeriod:
        previous = comparisons.get(period)
        if previous is None:
            continue
        block: dict[str, float] = {}
        for metric in TRACKED_METRICS:
            value = percentage_change(record.metric(metric), previous.metric(metric))
            if value is not None:
                block[metric] = value
        changes[period.value] = block
    return changes


def recompute_cri(record: DailyEnvironmentalRecord):
    """Score a record again from its stored aggregates."""
    return compute_cri(record.temperature, record.humidity, record.rainfall, record.soil_moisture)


def reading_from_mapping(data: Mapping[str, Any]) -> EnvironmentalReading:
    """Build a reading from a cleaned mapping (validator output or API payload)."""
    timestamp = coerce_datetime(data.get("timestamp")) or utc_now()
    source = data.get("data_source") or DataSource.COMBINED.value
    return EnvironmentalReading(
        temperature=data.get("temperature"),
        humidity=data.get("humidity"),
        rainfall=data.get("rainfall"),
        soil_moisture=data.get("soil_moisture"),
        timestamp=timestamp,
        coordinates=data.get("coordinates")
        if isinstance(data.get("coordinates"), Coordinates)
        else Coordinates.from_dict(data.get("coordinates")),
        location_id=data.get("location_id"),
        data_source=DataSource(source),
    )
