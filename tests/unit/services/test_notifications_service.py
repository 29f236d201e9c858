"""Tests for NotificationsService: preference gating, inbox and farming tips."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from app.domain.alerts import FARMING_TIPS
from app.domain.exceptions import ValidationError
from app.enums import DispatchStatus, NotificationType, Priority
from app.services.application.notifications_service import NotificationsService


class TestPreferences:
    def test_defaults_when_nothing_stored(self, notifications_service):
        prefs = notifications_service.get_preferences("farmer-1")
        assert prefs.weather_alerts and prefs.blight_risk_alerts and prefs.farming_tips

    def test_partial_update_keeps_other_flags(self, notifications_service):
        notifications_service.update_preferences("farmer-1", {"farming_tips": False})
        updated = notifications_service.update_preferences("farmer-1", {"weather_alerts": False, "farmer_id": "x"})
        assert updated.farmer_id == "farmer-1"
        assert updated.farming_tips is False
        assert updated.weather_alerts is False
        assert updated.blight_risk_alerts is True


class TestSend:
    def test_delivered_notification_is_stored(self, notifications_service):
        outcome = notifications_service.send(
            "farmer-1", "Title", "Body", NotificationType.BLIGHT, Priority.HIGH, {"cri": 75.0}
        )
        assert outcome.status == DispatchStatus.DELIVERED

        inbox = notifications_service.list_notifications("farmer-1")
        assert inbox["unread_count"] == 1
        message = inbox["notifications"][0]
        assert message["notification_id"] == outcome.notification_id
        assert message["data"] == {"cri": 75.0}
        assert message["is_read"] is False

    def test_disabled_type_is_skipped(self, notifications_service):
        notifications_service.update_preferences("farmer-1", {"blight_risk_alerts": False})
        outcome = notifications_service.send("farmer-1", "T", "B", NotificationType.BLIGHT, Priority.HIGH)
        assert outcome.status == DispatchStatus.SKIPPED
        assert notifications_service.list_notifications("farmer-1")["notifications"] == []

    def test_storage_failure_is_reported_not_raised(self):
        repo = MagicMock()
        repo.get_preferences.side_effect = RuntimeError("disk full")
        outcome = NotificationsService(repo).send("farmer-1", "T", "B", NotificationType.WEATHER, Priority.MEDIUM)
        assert outcome.status == DispatchStatus.FAILED
        assert "disk full" in outcome.reason


class TestInbox:
    def test_unread_filter_and_mark_read(self, notifications_service):
        first = notifications_service.send("farmer-1", "A", "a", NotificationType.WEATHER, Priority.MEDIUM)
        notifications_service.send("farmer-1", "B", "b", NotificationType.WEATHER, Priority.MEDIUM)

        assert notifications_service.mark_as_read(first.notification_id, "farmer-1") is True
        unread = notifications_service.list_notifications("farmer-1", unread_only=True)
        assert [n["title"] for n in unread["notifications"]] == ["B"]
        assert unread["unread_count"] == 1

    def test_mark_read_is_scoped_to_owner(self, notifications_service):
        outcome = notifications_service.send("farmer-1", "A", "a", NotificationType.WEATHER, Priority.MEDIUM)
        assert notifications_service.mark_as_read(outcome.notification_id, "farmer-2") is False
        assert notifications_service.mark_as_read(999) is False

    def test_mark_all_read(self, notifications_service):
        for title in ("A", "B"):
            notifications_service.send("farmer-1", title, "x", NotificationType.WEATHER, Priority.MEDIUM)
        notifications_service.send("farmer-2", "C", "c", NotificationType.WEATHER, Priority.MEDIUM)

        assert notifications_service.mark_all_read("farmer-1") == 2
        assert notifications_service.list_notifications("farmer-1", unread_only=True)["notifications"] == []
        assert notifications_service.list_notifications("farmer-2")["unread_count"] == 1

    def test_mark_all_read_requires_farmer(self, notifications_service):
        with pytest.raises(ValidationError):
            notifications_service.mark_all_read("")


class TestFarmingTips:
    def test_tip_of_the_day(self, notifications_service):
        day = date(2024, 5, 1)
        outcome = notifications_service.send_farming_tip("farmer-1", day=day)
        assert outcome.status == DispatchStatus.DELIVERED

        message = notifications_service.list_notifications("farmer-1")["notifications"][0]
        title, _ = FARMING_TIPS[day.toordinal() % len(FARMING_TIPS)]
        assert message["title"] == title
        assert message["priority"] == "low"
        assert message["notification_type"] == "tip"

    def test_tips_respect_preference(self, notifications_service):
        notifications_service.update_preferences("farmer-1", {"farming_tips": False})
        assert notifications_service.send_farming_tip("farmer-1").status == DispatchStatus.SKIPPED
