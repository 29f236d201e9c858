"""Repository for notification-related database operations."""

from __future__ import annotations

import json
from typing import Any

from app.domain.notification_settings import NotificationPreferences
from infrastructure.database.ops.notifications import NotificationOperations


class NotificationRepository:
    """Repository providing typed access to notification-related data."""

    def __init__(self, backend: NotificationOperations) -> None:
        self._backend = backend

    # --- Notification Settings ---

    def get_preferences(self, farmer_id: str) -> NotificationPreferences:
        """Stored preferences for a farmer, or the all-enabled defaults."""
        row = self._backend.get_notification_settings(farmer_id)
        if row is None:
            return NotificationPreferences.defaults(farmer_id)
        return NotificationPreferences.from_dict(row)

    def save_preferences(self, preferences: NotificationPreferences) -> None:
        self._backend.upsert_notification_settings(preferences.farmer_id, preferences.to_dict())

    # --- Notification Messages ---

    def create_message(
        self,
        farmer_id: str,
        notification_type: str,
        title: str,
        body: str,
        priority: str,
        data: dict[str, Any] | None = None,
    ) -> int:
        """Create a new notification message."""
        payload = json.dumps(data, default=str) if data else None
        return self._backend.create_notification(farmer_id, notification_type, title, body, priority, payload)

    def get_farmer_messages(
        self,
        farmer_id: str,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Get notifications for a farmer with ``data`` decoded."""
        messages = self._backend.get_farmer_notifications(farmer_id, unread_only, limit, offset)
        for message in messages:
            message["data"] = json.loads(message["data"]) if message.get("data") else {}
            message["is_read"] = bool(message.get("is_read"))
        return messages

    def count_unread(self, farmer_id: str) -> int:
        return self._backend.count_unread_notifications(farmer_id)

    def mark_read(self, notification_id: int, farmer_id: str | None = None) -> bool:
        """Mark a notification as read."""
        return self._backend.mark_notification_read(notification_id, farmer_id)

    def mark_all_read(self, farmer_id: str) -> int:
        """Mark all unread notifications of a farmer as read."""
        return self._backend.mark_all_notifications_read(farmer_id)
