"""
Schemas Module
==============

Pydantic models for request validation.
"""

from app.schemas.diagnosis import CreateDiagnosisRequest, DiagnosisHistoryQuery, DiagnosisResultRequest
from app.schemas.environment import ForecastQuery, RangeQuery, RefreshRequest, SubmitReadingRequest, TrendQuery
from app.schemas.notifications import NotificationListQuery, UpdatePreferencesRequest

__all__ = [
    "CreateDiagnosisRequest",
    "DiagnosisHistoryQuery",
    "DiagnosisResultRequest",
    "ForecastQuery",
    "NotificationListQuery",
    "RangeQuery",
    "RefreshRequest",
    "SubmitReadingRequest",
    "TrendQuery",
    "UpdatePreferencesRequest",
]
