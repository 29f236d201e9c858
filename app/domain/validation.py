"""
Reading validation.

Sanitizes a raw combined reading without ever rejecting it: invalid values
are replaced with neutral defaults and the problems are reported back in
``errors``. A missing soil-moisture value is estimated from rainfall.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping

from app.constants import ReadingDefaults
from app.domain.soil_moisture import estimate_soil_moisture


@dataclass(frozen=True)
class ValidationResult:
    cleaned: dict[str, Any]
    is_valid: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"cleaned": self.cleaned, "is_valid": self.is_valid, "errors": list(self.errors)}


def _finite(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def validate_reading(raw: Mapping[str, Any]) -> ValidationResult:
    """
    Validate and clean a raw reading.

    Rules are applied independently and errors accumulate:

    - temperature must be finite, else 22°C
    - humidity must be finite and within [0, 100], else 70%
    - rainfall must be finite and >= 0, else 0 mm
    - soil moisture, when missing or invalid, is estimated from the
      (possibly defaulted) rainfall and noted

    Any other keys in ``raw`` (timestamp, coordinates, location id, source)
    are passed through untouched.
    """
    cleaned: dict[str, Any] = dict(raw)
    errors: list[str] = []

    temperature = _finite(raw.get("temperature"))
    if temperature is None:
        errors.append(f"Invalid temperature: {raw.get('temperature')!r}; using {ReadingDefaults.TEMPERATURE_C}")
        temperature = ReadingDefaults.TEMPERATURE_C

    humidity = _finite(raw.get("humidity"))
    if humidity is None or not 0 <= humidity <= 100:
        errors.append(f"Invalid humidity: {raw.get('humidity')!r}; using {ReadingDefaults.HUMIDITY_PCT}")
        humidity = ReadingDefaults.HUMIDITY_PCT

    rainfall = _finite(raw.get("rainfall"))
    if rainfall is None or rainfall < 0:
        errors.append(f"Invalid rainfall: {raw.get('rainfall')!r}; using {ReadingDefaults.RAINFALL_MM}")
        rainfall = ReadingDefaults.RAINFALL_MM

    soil_moisture = _finite(raw.get("soil_moisture"))
    if soil_moisture is None or not 0 <= soil_moisture <= 100:
        soil_moisture = estimate_soil_moisture(rainfall)
        errors.append(f"Soil moisture unavailable; estimated {soil_moisture} from rainfall")

    cleaned.update(
        temperature=temperature,
        humidity=humidity,
        rainfall=rainfall,
        soil_moisture=soil_moisture,
    )
    return ValidationResult(cleaned=cleaned, is_valid=not errors, errors=errors)
