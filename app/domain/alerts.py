"""
Alert Policy
============
Decides which notifications a freshly folded daily record warrants and
composes their payloads. Evaluation is pure; dispatch is left to
:class:`app.services.application.alert_service.AlertService`.

Two independent rules:

* blight risk: fires for Medium, High and Critical risk, with priority
  medium / high / urgent and a call to submit a diagnostic photo
* weather change: fires when any *daily* percentage change crosses its
  threshold, listing every crossed metric in one notification
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from app.constants import WeatherChangeThresholds
from app.domain.environment import DailyEnvironmentalRecord
from app.enums import BlightType, ChangePeriod, DispatchStatus, NotificationType, Priority, RiskLevel

DIAGNOSTIC_CTA = (
    "Take a photo of your plants now to confirm this assessment and get personalized recommendations."
)

RISK_PRIORITY: dict[RiskLevel, Priority] = {
    RiskLevel.MEDIUM: Priority.MEDIUM,
    RiskLevel.HIGH: Priority.HIGH,
    RiskLevel.CRITICAL: Priority.URGENT,
}

BLIGHT_ADVICE: dict[tuple[BlightType, RiskLevel], str] = {
    (BlightType.EARLY_BLIGHT, RiskLevel.MEDIUM): (
        "Consider monitoring your plants closely and applying preventive fungicides."
    ),
    (BlightType.EARLY_BLIGHT, RiskLevel.HIGH): (
        "Immediate action recommended: Apply approved fungicides and inspect plants daily."
    ),
    (BlightType.EARLY_BLIGHT, RiskLevel.CRITICAL): (
        "URGENT: Apply fungicides immediately and consider removing severely affected plants "
        "to prevent spread."
    ),
    (BlightType.LATE_BLIGHT, RiskLevel.MEDIUM): (
        "Begin preventive measures such as applying copper-based fungicides and avoiding "
        "overhead irrigation."
    ),
    (BlightType.LATE_BLIGHT, RiskLevel.HIGH): (
        "Apply protective fungicides immediately and reduce humidity around plants when possible."
    ),
    (BlightType.LATE_BLIGHT, RiskLevel.CRITICAL): (
        "URGENT: Apply fungicides immediately, remove affected plants, and consider protective "
        "measures for remaining crops."
    ),
}

GENERIC_ADVICE = "Monitor your plants closely for signs of disease."

WEATHER_ALERT_TITLE = "Significant Weather Changes Detected"

FARMING_TIPS: tuple[tuple[str, str], ...] = (
    (
        "Crop Rotation Tip",
        "Don't plant tomatoes in the same spot year after year. Rotate with unrelated crops to "
        "prevent disease buildup in the soil.",
    ),
    (
        "Proper Watering Technique",
        "Water tomato plants at the base rather than from overhead to keep foliage dry and reduce "
        "disease risk.",
    ),
    (
        "Pruning for Health",
        "Remove lower leaves that touch the ground to prevent soil-borne diseases from splashing "
        "onto plants.",
    ),
    (
        "Companion Planting",
        "Consider planting basil near your tomatoes - it can repel certain pests and may improve "
        "tomato flavor.",
    ),
    (
        "Mulching Benefits",
        "Apply organic mulch around tomato plants to conserve moisture, suppress weeds, and "
        "prevent soil-borne diseases.",
    ),
    (
        "Spacing Matters",
        "Ensure proper spacing between tomato plants to improve air circulation and reduce "
        "disease pressure.",
    ),
    (
        "Early Harvesting",
        "During blight-prone periods, consider harvesting tomatoes when they first show color "
        "and letting them ripen indoors.",
    ),
    (
        "Natural Fungicides",
        "A diluted milk spray (1 part milk to 9 parts water) applied weekly can help prevent "
        "early blight and powdery mildew.",
    ),
)


@dataclass(frozen=True)
class Alert:
    """A notification the policy wants sent."""

    farmer_id: str | None
    title: str
    body: str
    notification_type: NotificationType
    priority: Priority
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "farmer_id": self.farmer_id,
            "title": self.title,
            "body": self.body,
            "type": self.notification_type.value,
            "priority": self.priority.value,
            "data": self.data,
        }


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of a best-effort side-channel call."""

    status: DispatchStatus
    reason: str | None = None
    notification_id: int | None = None

    @classmethod
    def delivered(cls, notification_id: int | None = None) -> "DispatchOutcome":
        return cls(DispatchStatus.DELIVERED, notification_id=notification_id)

    @classmethod
    def skipped(cls, reason: str) -> "DispatchOutcome":
        return cls(DispatchStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "DispatchOutcome":
        return cls(DispatchStatus.FAILED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status != DispatchStatus.FAILED


def blight_risk_alert(record: DailyEnvironmentalRecord) -> Alert | None:
    priority = RISK_PRIORITY.get(record.risk_level)
    if priority is None:
        return None

    level = record.risk_level.value
    blight = record.blight_type.value
    advice = BLIGHT_ADVICE.get((record.blight_type, record.risk_level), GENERIC_ADVICE)
    body = (
        f"We've detected a {level.lower()} risk of {blight} in your area. "
        f"Current CRI: {record.cri:.1f}. {advice} {DIAGNOSTIC_CTA}"
    )
    return Alert(
        farmer_id=record.farmer_id,
        title=f"{level} Risk of {blight} Detected",
        body=body,
        notification_type=NotificationType.BLIGHT,
        priority=priority,
        data={
            "cri": record.cri,
            "risk_level": level,
            "blight_type": blight,
            "date": record.day.isoformat(),
            "action": "diagnose",
            "url": "/diagnosis",
        },
    )


def _direction(value: float) -> str:
    return "increased" if value > 0 else "decreased"


def significant_changes(changes: Mapping[str, float]) -> list[str]:
    """Describe every daily change that crosses its threshold."""
    crossed: list[str] = []

    temperature = changes.get("temperature")
    if temperature is not None and abs(temperature) >= WeatherChangeThresholds.TEMPERATURE_PCT:
        crossed.append(f"Temperature {_direction(temperature)} by {abs(temperature):.1f}%")

    humidity = changes.get("humidity")
    if humidity is not None and abs(humidity) >= WeatherChangeThresholds.HUMIDITY_PCT:
        crossed.append(f"Humidity {_direction(humidity)} by {abs(humidity):.1f}%")

    rainfall = changes.get("rainfall")
    if rainfall is not None and rainfall > WeatherChangeThresholds.RAINFALL_PCT:
        crossed.append(f"Rainfall increased by {rainfall:.1f}%")

    soil_moisture = changes.get("soil_moisture")
    if soil_moisture is not None and abs(soil_moisture) >= WeatherChangeThresholds.SOIL_MOISTURE_PCT:
        crossed.append(f"Soil moisture {_direction(soil_moisture)} by {abs(soil_moisture):.1f}%")

    return crossed


def weather_change_alert(record: DailyEnvironmentalRecord) -> Alert | None:
    daily = record.percentage_changes.get(ChangePeriod.DAILY.value)
    if not daily:
        return None

    crossed = significant_changes(daily)
    if not crossed:
        return None

    body = (
        "The following significant weather changes have been detected in your area: "
        f"{'; '.join(crossed)}. These changes may affect your crops."
    )
    return Alert(
        farmer_id=record.farmer_id,
        title=WEATHER_ALERT_TITLE,
        body=body,
        notification_type=NotificationType.WEATHER,
        priority=Priority.MEDIUM,
        data={"changes": dict(daily), "date": record.day.isoformat()},
    )


def evaluate_alerts(record: DailyEnvironmentalRecord) -> list[Alert]:
    """Run both rules against a daily record; order is blight then weather."""
    alerts = []
    for rule in (blight_risk_alert, weather_change_alert):
        alert = rule(record)
        if alert is not None:
            alerts.append(alert)
    return alerts


def farming_tip(index: int) -> tuple[str, str]:
    """Rotate through the tip catalogue."""
    return FARMING_TIPS[index % len(FARMING_TIPS)]
