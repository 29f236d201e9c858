"""Repository for farm locations."""

from __future__ import annotations

from dataclasses import dataclass

from app.domain.environment import FarmLocation
from infrastructure.database.ops.farm_locations import FarmLocationOperations


@dataclass(frozen=True)
class FarmLocationRepository:
    """Repository facade over registered collection targets."""

    _backend: FarmLocationOperations

    def register(self, location: FarmLocation) -> int:
        if location.farmer_id is None:
            raise ValueError("farm locations belong to a farmer")
        return self._backend.upsert_farm_location(
            farmer_id=location.farmer_id,
            location_key=location.location_key,
            latitude=location.coordinates.latitude,
            longitude=location.coordinates.longitude,
            location_id=location.location_id,
        )

    def active(self) -> list[FarmLocation]:
        return [FarmLocation.from_row(row) for row in self._backend.list_farm_locations(active_only=True)]
