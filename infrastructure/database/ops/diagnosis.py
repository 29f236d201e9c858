"""Database operations for Diagnosis entities."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from app.domain.exceptions import RepositoryError
from app.utils.time import iso_now

logger = logging.getLogger(__name__)

_DIAGNOSIS_COLUMNS: frozenset[str] = frozenset(
    {
        "farmer_id",
        "image_url",
        "condition",
        "confidence",
        "recommendation",
        "cri",
        "coordinates",
        "status",
        "environmental_record_id",
        "symptoms",
        "farmer_message",
    }
)


class DiagnosisOperations:
    """Database operations for photo diagnoses."""

    def insert_diagnosis(self, values: dict[str, Any]) -> int:
        now = iso_now()
        cols = {k: v for k, v in values.items() if k in _DIAGNOSIS_COLUMNS}
        cols.update(created_at=now, updated_at=now)
        col_sql = ", ".join(cols)
        placeholders = ", ".join("?" for _ in cols)
        try:
            with self.connection() as db:
                cur = db.execute(
                    f"INSERT INTO Diagnosis ({col_sql}) VALUES ({placeholders})",  # nosec B608
                    list(cols.values()),
                )
                return int(cur.lastrowid)
        except sqlite3.Error as exc:
            logger.error("Failed to insert diagnosis: %s", exc)
            raise RepositoryError("Failed to insert diagnosis") from exc

    def get_diagnosis(self, diagnosis_id: int) -> dict[str, Any] | None:
        try:
            db = self.get_db()
            row = db.execute("SELECT * FROM Diagnosis WHERE diagnosis_id = ?", (diagnosis_id,)).fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("Failed to load diagnosis %s: %s", diagnosis_id, exc)
            raise RepositoryError("Failed to load diagnosis") from exc

    def update_diagnosis(
        self,
        diagnosis_id: int,
        values: dict[str, Any],
        expected_status: str | None = None,
    ) -> bool:
        """Update a diagnosis; with ``expected_status`` only while it is still in that state."""
        cols = {k: v for k, v in values.items() if k in _DIAGNOSIS_COLUMNS}
        cols["updated_at"] = iso_now()
        set_sql = ", ".join(f"{k} = ?" for k in cols)
        query = f"UPDATE Diagnosis SET {set_sql} WHERE diagnosis_id = ?"  # nosec B608
        params: list[Any] = [*cols.values(), diagnosis_id]
        if expected_status is not None:
            query += " AND status = ?"
            params.append(expected_status)
        try:
            with self.connection() as db:
                return db.execute(query, params).rowcount == 1
        except sqlite3.Error as exc:
            logger.error("Failed to update diagnosis %s: %s", diagnosis_id, exc)
            raise RepositoryError("Failed to update diagnosis") from exc

    def list_diagnoses(self, farmer_id: str, limit: int, offset: int = 0) -> list[dict[str, Any]]:
        try:
            db = self.get_db()
            cur = db.execute(
                """
                SELECT * FROM Diagnosis
                WHERE farmer_id = ?
                ORDER BY created_at DESC, diagnosis_id DESC
                LIMIT ? OFFSET ?
                """,
                (farmer_id, limit, offset),
            )
            return [dict(row) for row in cur.fetchall()]
        except sqlite3.Error as exc:
            logger.error("Failed to list diagnoses for %s: %s", farmer_id, exc)
            raise RepositoryError("Failed to list diagnoses") from exc

    def count_diagnoses(self, farmer_id: str) -> int:
        try:
            db = self.get_db()
            row = db.execute("SELECT COUNT(*) FROM Diagnosis WHERE farmer_id = ?", (farmer_id,)).fetchone()
            return int(row[0]) if row else 0
        except sqlite3.Error as exc:
            logger.error("Failed to count diagnoses for %s: %s", farmer_id, exc)
            raise RepositoryError("Failed to count diagnoses") from exc
