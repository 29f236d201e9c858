"""Database operations for Notification entities."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from app.domain.exceptions import RepositoryError
from app.utils.time import iso_now

logger = logging.getLogger(__name__)

# Preference columns of NotificationSettings, in table order.
_SETTINGS_FLAGS: tuple[str, ...] = (
    "enable_push",
    "enable_email",
    "weather_alerts",
    "blight_risk_alerts",
    "farming_tips",
    "diagnosis_results",
)


class NotificationOperations:
    """Database operations for notification settings and messages."""

    # --- Notification Settings ---

    def get_notification_settings(self, farmer_id: str) -> dict[str, Any] | None:
        """Get notification settings for a farmer."""
        try:
            db = self.get_db()
            row = db.execute("SELECT * FROM NotificationSettings WHERE farmer_id = ?", (farmer_id,)).fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("Failed to get notification settings: %s", exc)
            raise RepositoryError("Failed to get notification settings") from exc

    def upsert_notification_settings(self, farmer_id: str, settings: dict[str, Any]) -> None:
        """Insert or replace the full preference row for a farmer."""
        flags = [int(bool(settings.get(name, True))) for name in _SETTINGS_FLAGS]
        columns = ", ".join(_SETTINGS_FLAGS)
        placeholders = ", ".join("?" for _ in _SETTINGS_FLAGS)
        updates = ", ".join(f"{name} = excluded.{name}" for name in _SETTINGS_FLAGS)
        try:
            with self.connection() as db:
                db.execute(
                    f"""
                    INSERT INTO NotificationSettings (farmer_id, {columns}, updated_at)
                    VALUES (?, {placeholders}, ?)
                    ON CONFLICT(farmer_id) DO UPDATE SET {updates}, updated_at = excluded.updated_at
                    """,  # nosec B608
                    [farmer_id, *flags, iso_now()],
                )
        except sqlite3.Error as exc:
            logger.error("Failed to upsert notification settings: %s", exc)
            raise RepositoryError("Failed to save notification settings") from exc

    # --- Notification Messages ---

    def create_notification(
        self,
        farmer_id: str,
        notification_type: str,
        title: str,
        body: str,
        priority: str,
        data: str | None = None,
    ) -> int:
        """Create a new in-app notification."""
        try:
            with self.connection() as db:
                cur = db.execute(
                    """
                    INSERT INTO Notification (
                        farmer_id, notification_type, title, body, priority, data, is_read, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, 0, ?)
                    """,
                    (farmer_id, notification_type, title, body, priority, data, iso_now()),
                )
                return int(cur.lastrowid)
        except sqlite3.Error as exc:
            logger.error("Failed to create notification: %s", exc)
            raise RepositoryError("Failed to create notification") from exc

    def get_farmer_notifications(
        self,
        farmer_id: str,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Get notifications for a farmer, newest first."""
        query = "SELECT * FROM Notification WHERE farmer_id = ?"
        params: list[Any] = [farmer_id]
        if unread_only:
            query += " AND is_read = 0"
        query += " ORDER BY created_at DESC, notification_id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        try:
            db = self.get_db()
            return [dict(row) for row in db.execute(query, params).fetchall()]
        except sqlite3.Error as exc:
            logger.error("Failed to get notifications: %s", exc)
            raise RepositoryError("Failed to get notifications") from exc

    def count_unread_notifications(self, farmer_id: str) -> int:
        try:
            db = self.get_db()
            row = db.execute(
                "SELECT COUNT(*) FROM Notification WHERE farmer_id = ? AND is_read = 0", (farmer_id,)
            ).fetchone()
            return int(row[0]) if row else 0
        except sqlite3.Error as exc:
            logger.error("Failed to count unread notifications: %s", exc)
            raise RepositoryError("Failed to count notifications") from exc

    def mark_notification_read(self, notification_id: int, farmer_id: str | None = None) -> bool:
        """Mark a notification as read, optionally only if it belongs to ``farmer_id``."""
        try:
            with self.connection() as db:
                cur = db.execute(
                    "UPDATE Notification SET is_read = 1, read_at = ? "
                    "WHERE notification_id = ? AND (? IS NULL OR farmer_id = ?)",
                    (iso_now(), notification_id, farmer_id, farmer_id),
                )
                return cur.rowcount == 1
        except sqlite3.Error as exc:
            logger.error("Failed to mark notification read: %s", exc)
            raise RepositoryError("Failed to mark notification read") from exc

    def mark_all_notifications_read(self, farmer_id: str) -> int:
        """Mark every unread notification of ``farmer_id`` as read; returns how many changed."""
        try:
            with self.connection() as db:
                cur = db.execute(
                    "UPDATE Notification SET is_read = 1, read_at = ? WHERE farmer_id = ? AND is_read = 0",
                    (iso_now(), farmer_id),
                )
                return cur.rowcount
        except sqlite3.Error as exc:
            logger.error("Failed to mark notifications read for %s: %s", farmer_id, exc)
            raise RepositoryError("Failed to mark notifications read") from exc
