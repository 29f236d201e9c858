"""
Farm Insights
=============
Turns a farmer's latest daily record and the week of records before it into
dashboard statistics, condition insights and recommendations.

Risk is read relative to the CRI midpoint of 50: below it the Early Blight
zone, where a *falling* CRI means rising risk; above it the Late Blight zone,
where a rising CRI does.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from app.domain.environment import DailyEnvironmentalRecord

CRI_MIDPOINT = 50.0

EARLY_BLIGHT_ALARM_CRI = 30.0
LATE_BLIGHT_ALARM_CRI = 70.0
HOT_TEMPERATURE_C = 28.0
COLD_TEMPERATURE_C = 15.0
HUMID_PCT = 80.0
HEAVY_RAINFALL_MM = 20.0


@dataclass(frozen=True)
class Insight:
    kind: str
    title: str
    description: str
    icon: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind, "title": self.title, "description": self.description, "icon": self.icon}


@dataclass(frozen=True)
class Recommendation:
    title: str
    description: str
    priority: str
    category: str

    def to_dict(self) -> dict[str, str]:
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
        }


@dataclass(frozen=True)
class FarmInsights:
    current_risk: float
    farm_health: float
    weekly_risk_change: float
    insights: list[Insight] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stats": {
                "current_risk": self.current_risk,
                "farm_health": self.farm_health,
                "weekly_risk_change": self.weekly_risk_change,
            },
            "insights": [i.to_dict() for i in self.insights],
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


def risk_and_health(cri: float) -> tuple[float, float]:
    """
    ``(current_risk, farm_health)`` on 0..100 from a CRI.

    Both scale with the distance from 50 and sum to 100 on either side of it.
    """
    if cri < CRI_MIDPOINT:
        return max(0.0, 100 - cri * 2), min(100.0, cri * 2)
    distance = (cri - CRI_MIDPOINT) * 2
    return min(100.0, distance), max(0.0, 100 - distance)


def weekly_risk_change(oldest_cri: float, newest_cri: float) -> float:
    """
    Percentage change in risk between two CRIs, positive when risk grew.

    The zone is taken from the newest CRI: in the Early Blight zone the sign of
    the CRI movement is flipped.
    """
    if oldest_cri == 0:
        return 0.0
    if newest_cri < CRI_MIDPOINT:
        return (oldest_cri - newest_cri) / oldest_cri * 100
    return (newest_cri - oldest_cri) / oldest_cri * 100


def _condition_rules(record: DailyEnvironmentalRecord) -> tuple[list[Insight], list[Recommendation]]:
    insights: list[Insight] = []
    recommendations: list[Recommendation] = []

    if record.cri < EARLY_BLIGHT_ALARM_CRI:
        insights.append(Insight(
            "critical",
            "High Early Blight Risk Detected",
            "Your farm is currently experiencing conditions that significantly favor early blight "
            "development. Immediate protective measures are recommended.",
            "AlertCircle",
        ))
        recommendations.append(Recommendation(
            "Apply Preventative Fungicide",
            "Based on current conditions, applying a copper-based fungicide would provide protection "
            "against potential early blight development.",
            "high",
            "treatment",
        ))
    elif record.cri > LATE_BLIGHT_ALARM_CRI:
        insights.append(Insight(
            "critical",
            "High Late Blight Risk Detected",
            "Current conditions strongly favor late blight development. Your crop is at elevated risk "
            "and requires attention.",
            "AlertCircle",
        ))
        recommendations.append(Recommendation(
            "Apply Late Blight Specific Fungicide",
            "Use a systemic fungicide containing mancozeb or chlorothalonil to protect against late "
            "blight infection.",
            "high",
            "treatment",
        ))

    if record.temperature > HOT_TEMPERATURE_C:
        insights.append(Insight(
            "warning",
            "High Temperature Alert",
            "Temperatures above 28°C may stress plants and affect fruit development, but can reduce "
            "late blight risk. Ensure adequate irrigation.",
            "Thermometer",
        ))
        recommendations.append(Recommendation(
            "Increase Watering Frequency",
            "Consider increasing irrigation frequency during hot periods to prevent plant stress and "
            "maintain optimal growing conditions.",
            "medium",
            "irrigation",
        ))
    elif record.temperature < COLD_TEMPERATURE_C:
        insights.append(Insight(
            "warning",
            "Low Temperature Alert",
            "Temperatures below 15°C slow plant growth and can increase susceptibility to certain "
            "diseases, particularly late blight.",
            "Thermometer",
        ))

    if record.humidity > HUMID_PCT:
        insights.append(Insight(
            "warning",
            "Elevated Humidity Levels",
            "Humidity levels above 80% create favorable conditions for fungal diseases. Consider "
            "improving air circulation around plants.",
            "Droplets",
        ))
        recommendations.append(Recommendation(
            "Improve Air Circulation",
            "Prune lower leaves to increase air circulation and reduce humidity around plants, which "
            "helps prevent disease development.",
            "medium",
            "cultural",
        ))

    if record.rainfall > HEAVY_RAINFALL_MM:
        insights.append(Insight(
            "warning",
            "Heavy Rainfall Alert",
            "Recent heavy rainfall increases the risk of soil-borne diseases and may wash away "
            "protective fungicides.",
            "CloudRain",
        ))
        recommendations.append(Recommendation(
            "Reapply Fungicides",
            "Heavy rainfall may have washed away protective fungicides. Consider reapplication once "
            "foliage has dried.",
            "medium",
            "treatment",
        ))

    return insights, recommendations


STANDING_RECOMMENDATIONS = (
    Recommendation(
        "Schedule Disease Scouting",
        "Implement a regular scouting schedule to catch early signs of disease before they spread "
        "throughout your crop.",
        "low",
        "monitoring",
    ),
    Recommendation(
        "Use Disease-Free Seeds",
        "Always use certified disease-free seeds for new plantings to prevent introducing diseases "
        "into your fields.",
        "low",
        "planting",
    ),
)


def build_insights(
    latest: DailyEnvironmentalRecord,
    week: Sequence[DailyEnvironmentalRecord],
) -> FarmInsights:
    """
    Insights for ``latest``, with ``week`` the records of the past week in
    date order (``latest`` may be among them).

    The weekly change needs at least two records and is 0 otherwise.
    """
    current_risk, farm_health = risk_and_health(latest.cri)
    change = weekly_risk_change(week[0].cri, week[-1].cri) if len(week) > 1 else 0.0

    insights, recommendations = _condition_rules(latest)
    recommendations.extend(STANDING_RECOMMENDATIONS)

    return FarmInsights(
        current_risk=round(current_risk, 2),
        farm_health=round(farm_health, 2),
        weekly_risk_change=round(change, 2),
        insights=insights,
        recommendations=recommendations,
    )
