"""
Notification Service
====================

In-app notification dispatcher for BlightWatch farmers.

Every send resolves the farmer's preferences once, persists the
notification when its type is enabled and reports what happened as a
:class:`~app.domain.alerts.DispatchOutcome`. Push and email transports are
not implemented here; the ``enable_push`` / ``enable_email`` preferences are
stored for the delivery workers that own those channels.

Features:
- Blight-risk and weather-change alerts (via AlertService)
- Diagnosis results
- Daily farming tips
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from app.domain.alerts import DispatchOutcome, farming_tip
from app.domain.exceptions import ValidationError
from app.domain.notification_settings import NotificationPreferences
from app.enums import NotificationType, Priority
from app.utils.time import utc_today

if TYPE_CHECKING:
    from infrastructure.database.repositories.notifications import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationsService:
    """
    Notification dispatcher backed by the Notification table.

    Satisfies :class:`app.services.protocols.NotificationDispatcher`.
    """

    def __init__(self, notification_repo: "NotificationRepository"):
        self._repo = notification_repo

    # --- Settings Management ---

    def get_preferences(self, farmer_id: str) -> NotificationPreferences:
        """Preferences for a farmer; all-enabled defaults when none are stored."""
        return self._repo.get_preferences(farmer_id)

    def update_preferences(self, farmer_id: str, updates: Dict[str, Any]) -> NotificationPreferences:
        """Apply a partial update and store the full preference row."""
        current = self.get_preferences(farmer_id).to_dict()
        current.update({k: v for k, v in updates.items() if k in current and k != "farmer_id"})
        preferences = NotificationPreferences.from_dict(current)
        self._repo.save_preferences(preferences)
        return preferences

    # --- Core Notification Methods ---

    def send(
        self,
        farmer_id: str,
        title: str,
        body: str,
        notification_type: NotificationType,
        priority: Priority,
        data: Optional[Dict[str, Any]] = None,
    ) -> DispatchOutcome:
        """
        Send a notification to a farmer.

        Never raises: a disabled type is reported as skipped and a storage
        failure as failed.
        """
        try:
            preferences = self.get_preferences(farmer_id)
            if not preferences.allows(notification_type):
                logger.debug("Notification type %s disabled for farmer %s", notification_type, farmer_id)
                return DispatchOutcome.skipped(f"{notification_type.value} notifications disabled")

            notification_id = self._repo.create_message(
                farmer_id=farmer_id,
                notification_type=notification_type.value,
                title=title,
                body=body,
                priority=priority.value,
                data=data,
            )
            logger.info("Notification %s (%s/%s) sent to farmer %s", notification_id, notification_type, priority, farmer_id)
            return DispatchOutcome.delivered(notification_id)
        except Exception as e:
            logger.error(f"Error sending {notification_type} notification to farmer {farmer_id}: {e}", exc_info=True)
            return DispatchOutcome.failed(str(e))

    def send_farming_tip(self, farmer_id: str, day: Optional[date] = None) -> DispatchOutcome:
        """Send the tip of the day; tips rotate by calendar day."""
        title, body = farming_tip((day or utc_today()).toordinal())
        return self.send(farmer_id, title, body, NotificationType.TIP, Priority.LOW)

    # --- Reading ---

    def list_notifications(
        self,
        farmer_id: str,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        messages: List[Dict[str, Any]] = self._repo.get_farmer_messages(farmer_id, unread_only, limit, offset)
        return {
            "notifications": messages,
            "unread_count": self._repo.count_unread(farmer_id),
        }

    def mark_as_read(self, notification_id: int, farmer_id: Optional[str] = None) -> bool:
        return self._repo.mark_read(notification_id, farmer_id)

    def mark_all_read(self, farmer_id: str) -> int:
        """Mark the whole inbox of ``farmer_id`` as read and return how many were unread."""
        if not farmer_id:
            raise ValidationError("farmer_id is required")
        marked = self._repo.mark_all_read(farmer_id)
        logger.info("Marked %d notification(s) read for %s", marked, farmer_id)
        return marked
