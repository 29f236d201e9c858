"""
Common Enumerations
====================

Enums shared by the risk engine, the diagnosis workflow and the
notification layer. Values are the exact strings persisted in the
database and returned by the API.
"""

from enum import Enum


class RiskLevel(str, Enum):
    """
    Severity band derived from the distance between a CRI and 50.
    Used by: CRI calculator, alert policy, daily records
    """
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    def __str__(self) -> str:
        return self.value


class BlightType(str, Enum):
    """
    Disease regime implied by the sign of (CRI - 50).
    Used by: CRI calculator, alert policy, reconciler
    """
    HEALTHY = "Healthy"
    EARLY_BLIGHT = "Early Blight"
    LATE_BLIGHT = "Late Blight"

    def __str__(self) -> str:
        return self.value


class DiagnosisCondition(str, Enum):
    """
    Condition label attached to a photo diagnosis.
    Used by: diagnosis service, image classifier results
    """
    PENDING = "Pending"
    HEALTHY = "Healthy"
    EARLY_BLIGHT = "Early Blight"
    LATE_BLIGHT = "Late Blight"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


class DiagnosisStatus(str, Enum):
    """Lifecycle state of a diagnosis."""
    PENDING = "pending"
    VALIDATED = "validated"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class NotificationType(str, Enum):
    """
    Notification categories, each gated by a farmer preference.
    Used by: alert service, notifications service
    """
    WEATHER = "weather"
    BLIGHT = "blight"
    TIP = "tip"
    DIAGNOSIS = "diagnosis"
    SYSTEM = "system"

    def __str__(self) -> str:
        return self.value


class Priority(str, Enum):
    """
    Priority levels for notifications.
    Used by: alert policy, notifications service
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    def __str__(self) -> str:
        return self.value


class DataSource(str, Enum):
    """Origin of the readings folded into a daily record."""
    API = "api"
    SENSOR = "sensor"
    COMBINED = "combined"
    MANUAL = "manual"
    FALLBACK = "fallback"

    def __str__(self) -> str:
        return self.value


class ChangePeriod(str, Enum):
    """Comparison windows for percentage-change analytics."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    def __str__(self) -> str:
        return self.value


class DispatchStatus(str, Enum):
    """Result of a best-effort notification hand-off."""
    DELIVERED = "delivered"
    SKIPPED = "skipped"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value
