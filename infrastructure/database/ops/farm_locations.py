"""Database operations for farm locations (scheduled collection targets)."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from app.domain.exceptions import RepositoryError
from app.utils.time import iso_now

logger = logging.getLogger(__name__)


class FarmLocationOperations:
    """Database operations for registered farm locations."""

    def upsert_farm_location(
        self,
        farmer_id: str,
        location_key: str,
        latitude: float,
        longitude: float,
        location_id: str | None = None,
        active: bool = True,
    ) -> int:
        try:
            with self.connection() as db:
                db.execute(
                    """
                    INSERT INTO FarmLocation (
                        farmer_id, location_key, location_id, latitude, longitude, active, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(farmer_id, location_key) DO UPDATE SET
                        location_id = excluded.location_id,
                        latitude = excluded.latitude,
                        longitude = excluded.longitude,
                        active = excluded.active
                    """,
                    (farmer_id, location_key, location_id, latitude, longitude, int(active), iso_now()),
                )
                row = db.execute(
                    "SELECT id FROM FarmLocation WHERE farmer_id = ? AND location_key = ?",
                    (farmer_id, location_key),
                ).fetchone()
                return int(row["id"])
        except sqlite3.Error as exc:
            logger.error("Failed to save farm location for %s: %s", farmer_id, exc)
            raise RepositoryError("Failed to save farm location") from exc

    def list_farm_locations(self, active_only: bool = True) -> list[dict[str, Any]]:
        query = "SELECT * FROM FarmLocation"
        if active_only:
            query += " WHERE active = 1"
        query += " ORDER BY farmer_id, location_key"
        try:
            db = self.get_db()
            return [dict(row) for row in db.execute(query).fetchall()]
        except sqlite3.Error as exc:
            logger.error("Failed to list farm locations: %s", exc)
            raise RepositoryError("Failed to list farm locations") from exc
