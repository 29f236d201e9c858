"""Repository facades exposing typed accessors over low-level mixins."""

from infrastructure.database.repositories.diagnosis import DiagnosisRepository
from infrastructure.database.repositories.environment import EnvironmentalDataRepository
from infrastructure.database.repositories.farm_locations import FarmLocationRepository
from infrastructure.database.repositories.notifications import NotificationRepository

__all__ = [
    "DiagnosisRepository",
    "EnvironmentalDataRepository",
    "FarmLocationRepository",
    "NotificationRepository",
]
