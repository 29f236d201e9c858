"""
Domain Package
==============
Pure models and rules of the blight-risk engine: readings and daily
records, the CRI calculator, validation, diagnosis reconciliation and the
alert policy. Nothing in here performs I/O.
"""

from .alerts import Alert, DispatchOutcome, evaluate_alerts
from .cri import CRIResult, classify_cri, compute_cri
from .diagnosis import Diagnosis, ImageDiagnosis, ReconciliationResult, reconcile_cri
from .environment import (
    Coordinates,
    DailyEnvironmentalRecord,
    EnvironmentalReading,
    fold_reading,
    percentage_change,
)
from .notification_settings import NotificationPreferences
from .soil_moisture import estimate_soil_moisture
from .validation import ValidationResult, validate_reading

__all__ = [
    # Alerts
    "Alert",
    "DispatchOutcome",
    "evaluate_alerts",
    # Risk index
    "CRIResult",
    "classify_cri",
    "compute_cri",
    "estimate_soil_moisture",
    # Diagnosis
    "Diagnosis",
    "ImageDiagnosis",
    "ReconciliationResult",
    "reconcile_cri",
    # Environment
    "Coordinates",
    "DailyEnvironmentalRecord",
    "EnvironmentalReading",
    "fold_reading",
    "percentage_change",
    # Notifications
    "NotificationPreferences",
    # Validation
    "ValidationResult",
    "validate_reading",
]
