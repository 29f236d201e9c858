"""
Notification Schemas
====================
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class NotificationListQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    unread_only: bool = Field(default=False, validation_alias=AliasChoices("unread_only", "unreadOnly"))
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class UpdatePreferencesRequest(BaseModel):
    """Partial update; omitted flags keep their stored value."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    enable_push: bool | None = Field(default=None, validation_alias=AliasChoices("enable_push", "enablePush"))
    enable_email: bool | None = Field(default=None, validation_alias=AliasChoices("enable_email", "enableEmail"))
    weather_alerts: bool | None = Field(default=None, validation_alias=AliasChoices("weather_alerts", "weatherAlerts"))
    blight_risk_alerts: bool | None = Field(
        default=None, validation_alias=AliasChoices("blight_risk_alerts", "blightRiskAlerts")
    )
    farming_tips: bool | None = Field(default=None, validation_alias=AliasChoices("farming_tips", "farmingTips"))
    diagnosis_results: bool | None = Field(
        default=None, validation_alias=AliasChoices("diagnosis_results", "diagnosisResults")
    )
