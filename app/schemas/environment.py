"""
Environment Schemas
===================

Request schemas for reading ingestion, on-demand refresh and history queries.
Field names accept both snake_case and the camelCase used by mobile clients.
"""

from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from app.domain.environment import Coordinates, FarmLocation


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class _LocatedRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    latitude: float | None = Field(default=None, ge=-90, le=90, validation_alias=_alias("latitude", "lat"))
    longitude: float | None = Field(default=None, ge=-180, le=180, validation_alias=_alias("longitude", "lon"))
    location_id: str | None = Field(default=None, validation_alias=_alias("location_id", "locationId"))

    @model_validator(mode="after")
    def _coordinates_together(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self

    @property
    def coordinates(self) -> Coordinates | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)


class SubmitReadingRequest(_LocatedRequest):
    """One raw reading. Values are cleaned by the reading validator, not rejected here."""

    farmer_id: str | None = Field(default=None, validation_alias=_alias("farmer_id", "farmerId"))
    temperature: float | None = None
    humidity: float | None = None
    rainfall: float | None = None
    soil_moisture: float | None = Field(default=None, validation_alias=_alias("soil_moisture", "soilMoisture"))
    timestamp: datetime | None = None
    data_source: str = Field(default="combined", pattern="^(api|sensor|combined|fallback)$")

    def to_raw(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "rainfall": self.rainfall,
            "soil_moisture": self.soil_moisture,
            "timestamp": self.timestamp,
            "coordinates": self.coordinates,
            "location_id": self.location_id,
            "data_source": self.data_source,
        }


class RefreshRequest(_LocatedRequest):
    """On-demand collection for a farmer's field."""

    farmer_id: str = Field(..., min_length=1, validation_alias=_alias("farmer_id", "farmerId"))
    latitude: float = Field(..., ge=-90, le=90, validation_alias=_alias("latitude", "lat"))
    longitude: float = Field(..., ge=-180, le=180, validation_alias=_alias("longitude", "lon"))

    def to_location(self) -> FarmLocation:
        return FarmLocation(
            farmer_id=self.farmer_id,
            coordinates=Coordinates(self.latitude, self.longitude),
            location_id=self.location_id,
        )


class RangeQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    start: date = Field(..., validation_alias=_alias("start", "startDate"))
    end: date = Field(..., validation_alias=_alias("end", "endDate"))
    location_key: str | None = Field(default=None, validation_alias=_alias("location_key", "locationKey"))


class TrendQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    days: int = Field(default=7, ge=1, le=90)
    location_key: str | None = Field(default=None, validation_alias=_alias("location_key", "locationKey"))


class ForecastQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    latitude: float = Field(..., ge=-90, le=90, validation_alias=_alias("latitude", "lat"))
    longitude: float = Field(..., ge=-180, le=180, validation_alias=_alias("longitude", "lon"))
