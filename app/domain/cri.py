"""
Cumulative Risk Index
=====================
Bidirectional blight-risk score for tomato crops.

A CRI of 50 is the neutral state. Three weighted factors push the score
away from 50: upwards towards cool/humid/wet conditions that favour Late
Blight, downwards towards warm/dry conditions that favour Early Blight.
The distance from 50 maps to a severity band, the sign maps to the disease.

    cri = clamp(50 + 0.4 * temperature + 0.4 * humidity + 0.2 * soil, 1, 100)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.constants import CRIModel
from app.domain.soil_moisture import estimate_soil_moisture
from app.enums import BlightType, RiskLevel


@dataclass(frozen=True)
class CRIResult:
    """Score and classification returned by :func:`compute_cri`."""

    cri: float
    risk_level: RiskLevel
    blight_type: BlightType

    def to_dict(self) -> dict[str, Any]:
        return {
            "cri": self.cri,
            "risk_level": self.risk_level.value,
            "blight_type": self.blight_type.value,
        }


def temperature_factor(temperature: float) -> float:
    """Shift in [-25, +25]: +25 at 10°C fading to 0 at 20°C, 0 at 24°C growing to -25 at 29°C."""
    if temperature < CRIModel.COOL_MIN_C or temperature > CRIModel.WARM_MAX_C:
        return 0.0
    if temperature <= CRIModel.COOL_MAX_C:
        span = CRIModel.COOL_MAX_C - CRIModel.COOL_MIN_C
        return CRIModel.TEMPERATURE_MAX_SHIFT * (1 - (temperature - CRIModel.COOL_MIN_C) / span)
    if temperature >= CRIModel.WARM_MIN_C:
        span = CRIModel.WARM_MAX_C - CRIModel.WARM_MIN_C
        return -CRIModel.TEMPERATURE_MAX_SHIFT * (1 - (CRIModel.WARM_MAX_C - temperature) / span)
    return 0.0


def humidity_factor(humidity: float) -> float:
    """Shift in [-20, +30]: linear above 80% up to 100%, linear below 60% down to 0%."""
    if humidity > CRIModel.HUMID_ABOVE_PCT:
        return CRIModel.HUMIDITY_MAX_RISE * ((humidity - CRIModel.HUMID_ABOVE_PCT) / (100 - CRIModel.HUMID_ABOVE_PCT))
    if humidity < CRIModel.DRY_BELOW_PCT:
        return -CRIModel.HUMIDITY_MAX_DROP * ((CRIModel.DRY_BELOW_PCT - humidity) / CRIModel.DRY_BELOW_PCT)
    return 0.0


def soil_moisture_factor(soil_moisture: float) -> float:
    """Shift in [-25, +25]: linear above 60% up to 100%, linear below 40% down to 0%."""
    if soil_moisture > CRIModel.WET_ABOVE_PCT:
        return CRIModel.SOIL_MAX_SHIFT * ((soil_moisture - CRIModel.WET_ABOVE_PCT) / (100 - CRIModel.WET_ABOVE_PCT))
    if soil_moisture < CRIModel.DRY_SOIL_BELOW_PCT:
        return -CRIModel.SOIL_MAX_SHIFT * (
            (CRIModel.DRY_SOIL_BELOW_PCT - soil_moisture) / CRIModel.DRY_SOIL_BELOW_PCT
        )
    return 0.0


def clamp_cri(value: float) -> float:
    """Clamp to [1, 100] and round to two decimals."""
    return round(min(max(value, CRIModel.MIN), CRIModel.MAX), CRIModel.DECIMALS)


def classify_cri(cri: float) -> tuple[RiskLevel, BlightType]:
    """
    Map a CRI to (risk level, blight type).

    Below 50 is Early Blight banded {>=40 Low, >=30 Medium, >=20 High, else
    Critical}; above 50 is Late Blight banded {<=60 Low, <=70 Medium,
    <=80 High, else Critical}; exactly 50 is Healthy/Low.
    """
    if cri < CRIModel.BASELINE:
        if cri >= CRIModel.EARLY_LOW_MIN:
            level = RiskLevel.LOW
        elif cri >= CRIModel.EARLY_MEDIUM_MIN:
            level = RiskLevel.MEDIUM
        elif cri >= CRIModel.EARLY_HIGH_MIN:
            level = RiskLevel.HIGH
        else:
            level = RiskLevel.CRITICAL
        return level, BlightType.EARLY_BLIGHT

    if cri > CRIModel.BASELINE:
        if cri <= CRIModel.LATE_LOW_MAX:
            level = RiskLevel.LOW
        elif cri <= CRIModel.LATE_MEDIUM_MAX:
            level = RiskLevel.MEDIUM
        elif cri <= CRIModel.LATE_HIGH_MAX:
            level = RiskLevel.HIGH
        else:
            level = RiskLevel.CRITICAL
        return level, BlightType.LATE_BLIGHT

    return RiskLevel.LOW, BlightType.HEALTHY


def compute_cri(
    temperature: float,
    humidity: float,
    rainfall: float = 0.0,
    soil_moisture: float | None = None,
) -> CRIResult:
    """
    Score one set of environmental conditions.

    Rainfall only matters when soil moisture is unknown, in which case it
    is estimated from rainfall.
    """
    if soil_moisture is None:
        soil_moisture = estimate_soil_moisture(rainfall)

    shift = (
        temperature_factor(temperature) * CRIModel.TEMPERATURE_WEIGHT
        + humidity_factor(humidity) * CRIModel.HUMIDITY_WEIGHT
        + soil_moisture_factor(soil_moisture) * CRIModel.SOIL_MOISTURE_WEIGHT
    )
    cri = clamp_cri(CRIModel.BASELINE + shift)
    risk_level, blight_type = classify_cri(cri)
    return CRIResult(cri=cri, risk_level=risk_level, blight_type=blight_type)
