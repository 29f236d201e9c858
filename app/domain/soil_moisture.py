"""
Soil Moisture Estimation
========================
Fallback model producing a plausible soil-moisture percentage from recent
rainfall when the sensor feed is unavailable.
"""

from __future__ import annotations

import math
from typing import Any

from app.constants import ReadingDefaults, SoilMoistureModel


def _as_rainfall(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        rainfall = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(rainfall):
        return 0.0
    return rainfall


def estimate_soil_moisture(rainfall: Any) -> float:
    """
    Estimate soil moisture (%) from rainfall (mm).

    ``clamp(40 + rainfall * 2, 0, 100)``: monotonically non-decreasing in
    rainfall and saturating at 100. Missing or NaN rainfall counts as zero;
    negative rainfall is invalid and yields the 50% default.
    """
    rainfall = _as_rainfall(rainfall)
    if rainfall < 0:
        return ReadingDefaults.SOIL_MOISTURE_PCT
    moisture = SoilMoistureModel.BASELINE_PCT + rainfall * SoilMoistureModel.PCT_PER_MM
    if math.isinf(moisture):
        return SoilMoistureModel.MAX_PCT
    return min(SoilMoistureModel.MAX_PCT, max(SoilMoistureModel.MIN_PCT, moisture))
