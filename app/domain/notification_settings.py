"""
Notification Settings Domain Object
====================================

Farmer notification preferences. Every flag has an explicit default so a
farmer without a stored row behaves exactly like one with all defaults.
"""

from dataclasses import dataclass, fields
from typing import Any

from app.enums import NotificationType


@dataclass(frozen=True)
class NotificationPreferences:
    """Farmer notification preferences."""

    farmer_id: str
    enable_push: bool = True
    enable_email: bool = True
    weather_alerts: bool = True
    blight_risk_alerts: bool = True
    farming_tips: bool = True
    diagnosis_results: bool = True

    def allows(self, notification_type: NotificationType) -> bool:
        """Whether a notification of ``notification_type`` may be delivered."""
        if notification_type == NotificationType.WEATHER:
            return self.weather_alerts
        if notification_type == NotificationType.BLIGHT:
            return self.blight_risk_alerts
        if notification_type == NotificationType.TIP:
            return self.farming_tips
        if notification_type == NotificationType.DIAGNOSIS:
            return self.diagnosis_results
        return True

    @classmethod
    def defaults(cls, farmer_id: str) -> "NotificationPreferences":
        return cls(farmer_id=farmer_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotificationPreferences":
        """Create preferences from a row or payload; absent flags take their default."""
        flags = {
            f.name: bool(data[f.name])
            for f in fields(cls)
            if f.name != "farmer_id" and data.get(f.name) is not None
        }
        return cls(farmer_id=str(data["farmer_id"]), **flags)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for database storage."""
        return {
            "farmer_id": self.farmer_id,
            "enable_push": self.enable_push,
            "enable_email": self.enable_email,
            "weather_alerts": self.weather_alerts,
            "blight_risk_alerts": self.blight_risk_alerts,
            "farming_tips": self.farming_tips,
            "diagnosis_results": self.diagnosis_results,
        }
