"""
Diagnosis Schemas
=================
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from app.constants import Pagination
from app.domain.diagnosis import ImageDiagnosis
from app.domain.environment import Coordinates
from app.enums import DiagnosisCondition


class CreateDiagnosisRequest(BaseModel):
    """A photo that passed the content check and awaits classification."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    farmer_id: str = Field(..., min_length=1, validation_alias=AliasChoices("farmer_id", "farmerId"))
    image_url: str = Field(..., min_length=1, validation_alias=AliasChoices("image_url", "imageUrl"))
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

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


class DiagnosisResultRequest(BaseModel):
    """Classification computed elsewhere (e.g. by the mobile client's model)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    condition: DiagnosisCondition
    confidence: float = Field(..., ge=0, le=100)
    recommendation: str = ""
    symptoms: str | None = Field(default=None, validation_alias=AliasChoices("symptoms", "signsAndSymptoms"))

    def to_image_diagnosis(self) -> ImageDiagnosis:
        return ImageDiagnosis(
            condition=self.condition,
            confidence=self.confidence,
            recommendation=self.recommendation,
            symptoms=self.symptoms or None,
        )


class DiagnosisHistoryQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    farmer_id: str = Field(..., min_length=1, validation_alias=AliasChoices("farmer_id", "farmerId"))
    limit: int = Field(default=Pagination.DEFAULT_LIMIT, ge=1, le=Pagination.MAX_LIMIT)
    offset: int = Field(default=0, ge=0)
