"""
Enums Module
============

This module provides enumeration types for the BlightWatch application.
Enums ensure type safety and consistency across the codebase.
"""

from app.enums.common import (
    BlightType,
    ChangePeriod,
    DataSource,
    DiagnosisCondition,
    DiagnosisStatus,
    DispatchStatus,
    NotificationType,
    Priority,
    RiskLevel,
)

__all__ = [
    "BlightType",
    "ChangePeriod",
    "DataSource",
    "DiagnosisCondition",
    "DiagnosisStatus",
    "DispatchStatus",
    "NotificationType",
    "Priority",
    "RiskLevel",
]
