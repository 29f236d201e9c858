"""Database operations for daily environmental records."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from app.domain.exceptions import ConflictError, RepositoryError
from app.utils.time import iso_now

logger = logging.getLogger(__name__)

# Columns written by insert/update; record_id and version are managed here.
_RECORD_COLUMNS: tuple[str, ...] = (
    "record_key",
    "farmer_id",
    "day",
    "location_key",
    "location_id",
    "latitude",
    "longitude",
    "readings",
    "temperature",
    "humidity",
    "rainfall",
    "soil_moisture",
    "cri",
    "risk_level",
    "blight_type",
    "percentage_changes",
    "data_source",
    "adjusted_by_diagnosis_id",
)


class EnvironmentOperations:
    """Reads and version-checked writes on ``EnvironmentalDaily``."""

    def get_environmental_record(self, record_id: int) -> dict[str, Any] | None:
        try:
            db = self.get_db()
            cur = db.execute("SELECT * FROM EnvironmentalDaily WHERE record_id = ?", (record_id,))
            row = cur.fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("Failed to load environmental record %s: %s", record_id, exc)
            raise RepositoryError("Failed to load environmental record") from exc

    def get_environmental_record_by_key(self, record_key: str) -> dict[str, Any] | None:
        try:
            db = self.get_db()
            cur = db.execute("SELECT * FROM EnvironmentalDaily WHERE record_key = ?", (record_key,))
            row = cur.fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("Failed to load environmental record %s: %s", record_key, exc)
            raise RepositoryError("Failed to load environmental record") from exc

    def insert_environmental_record(self, values: dict[str, Any]) -> int:
        """Insert a new day record at version 1. A duplicate key raises ConflictError."""
        now = iso_now()
        cols = {k: values.get(k) for k in _RECORD_COLUMNS}
        cols.update(version=1, created_at=now, updated_at=now)
        col_sql = ", ".join(cols)
        placeholders = ", ".join("?" for _ in cols)
        try:
            with self.connection() as db:
                cur = db.execute(
                    f"INSERT INTO EnvironmentalDaily ({col_sql}) VALUES ({placeholders})",  # nosec B608
                    list(cols.values()),
                )
                return int(cur.lastrowid)
        except sqlite3.IntegrityError as exc:
            self.get_db().rollback()
            raise ConflictError(
                "Daily record already exists", detail={"record_key": values.get("record_key")}
            ) from exc
        except sqlite3.Error as exc:
            logger.error("Failed to insert environmental record: %s", exc)
            raise RepositoryError("Failed to insert environmental record") from exc

    def update_environmental_record(
        self,
        record_id: int,
        expected_version: int,
        values: dict[str, Any],
    ) -> bool:
        """
        Compare-and-swap update.

        Writes ``values`` and bumps the version only when the stored version
        still equals ``expected_version``. Returns False when another writer
        got there first.
        """
        cols = {k: values[k] for k in _RECORD_COLUMNS if k in values and k != "record_key"}
        cols["updated_at"] = iso_now()
        set_sql = ", ".join(f"{k} = ?" for k in cols)
        params = [*cols.values(), record_id, expected_version]
        try:
            with self.connection() as db:
                cur = db.execute(
                    f"UPDATE EnvironmentalDaily SET {set_sql}, version = version + 1 "  # nosec B608
                    "WHERE record_id = ? AND version = ?",
                    params,
                )
                return cur.rowcount == 1
        except sqlite3.Error as exc:
            logger.error("Failed to update environmental record %s: %s", record_id, exc)
            raise RepositoryError("Failed to update environmental record") from exc

    def get_latest_environmental_record(
        self,
        farmer_id: str | None,
        location_key: str | None = None,
        on_or_before: str | None = None,
    ) -> dict[str, Any] | None:
        """Most recent day record for a farmer, optionally scoped to a location or cut-off day."""
        query = "SELECT * FROM EnvironmentalDaily WHERE farmer_id IS ?"
        params: list[Any] = [farmer_id]
        if location_key is not None:
            query += " AND location_key = ?"
            params.append(location_key)
        if on_or_before is not None:
            query += " AND day <= ?"
            params.append(on_or_before)
        query += " ORDER BY day DESC, updated_at DESC LIMIT 1"
        try:
            db = self.get_db()
            row = db.execute(query, params).fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("Failed to load latest environmental record: %s", exc)
            raise RepositoryError("Failed to load latest environmental record") from exc

    def list_environmental_records(
        self,
        farmer_id: str | None,
        start_day: str,
        end_day: str,
        location_key: str | None = None,
    ) -> list[dict[str, Any]]:
        query = "SELECT * FROM EnvironmentalDaily WHERE farmer_id IS ? AND day BETWEEN ? AND ?"
        params: list[Any] = [farmer_id, start_day, end_day]
        if location_key is not None:
            query += " AND location_key = ?"
            params.append(location_key)
        query += " ORDER BY day ASC, location_key ASC"
        try:
            db = self.get_db()
            return [dict(row) for row in db.execute(query, params).fetchall()]
        except sqlite3.Error as exc:
            logger.error("Failed to list environmental records: %s", exc)
            raise RepositoryError("Failed to list environmental records") from exc
