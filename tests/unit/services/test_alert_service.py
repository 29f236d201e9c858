"""
Tests for AlertService: alert dispatch is best-effort, gated by preferences
and deduplicated per day record.
"""

from dataclasses import replace

import pytest

from app.domain.alerts import DispatchOutcome
from app.domain.environment import fold_reading
from app.enums import BlightType, DispatchStatus, NotificationType, RiskLevel
from app.services.application.alert_service import AlertService


@pytest.fixture()
def risky_record(make_reading, at):
    record = fold_reading(None, make_reading(timestamp=at(2024, 5, 1)), "farmer-1")
    return replace(record, cri=75.0, risk_level=RiskLevel.HIGH, blight_type=BlightType.LATE_BLIGHT)


class TestProcessRecord:
    def test_blight_alert_is_stored(self, alert_service, notifications_service, risky_record):
        outcomes = alert_service.process_record(risky_record)
        assert [o.status for o in outcomes] == [DispatchStatus.DELIVERED]

        inbox = notifications_service.list_notifications("farmer-1")["notifications"]
        assert inbox[0]["notification_type"] == "blight"
        assert inbox[0]["priority"] == "high"

    def test_weather_alert_respects_preferences(self, alert_service, notifications_service, make_reading, at):
        notifications_service.update_preferences("farmer-1", {"weather_alerts": False})
        record = replace(
            fold_reading(None, make_reading(timestamp=at(2024, 5, 1)), "farmer-1"),
            percentage_changes={"daily": {"temperature": 30.0}},
        )
        outcomes = alert_service.process_record(record)
        assert [o.status for o in outcomes] == [DispatchStatus.SKIPPED]

    def test_record_without_farmer_is_ignored(self, mock_dispatcher, risky_record):
        service = AlertService(mock_dispatcher)
        assert service.process_record(replace(risky_record, farmer_id=None)) == []
        mock_dispatcher.send.assert_not_called()

    def test_dispatcher_exception_becomes_failed_outcome(self, mock_dispatcher, risky_record):
        mock_dispatcher.send.side_effect = RuntimeError("push gateway down")
        outcomes = AlertService(mock_dispatcher).process_record(risky_record)
        assert outcomes[0].status == DispatchStatus.FAILED
        assert "push gateway down" in outcomes[0].reason


class TestDedupe:
    def test_identical_alert_sent_once(self, mock_dispatcher, risky_record):
        service = AlertService(mock_dispatcher)
        service.process_record(risky_record)
        second = service.process_record(risky_record)

        assert mock_dispatcher.send.call_count == 1
        assert second[0].status == DispatchStatus.SKIPPED
        assert second[0].reason == "duplicate alert"

    def test_changed_severity_is_sent_again(self, mock_dispatcher, risky_record):
        service = AlertService(mock_dispatcher)
        service.process_record(risky_record)
        service.process_record(replace(risky_record, cri=85.0, risk_level=RiskLevel.CRITICAL))
        assert mock_dispatcher.send.call_count == 2

    def test_failed_send_is_retried(self, mock_dispatcher, risky_record):
        mock_dispatcher.send.return_value = DispatchOutcome.failed("timeout")
        service = AlertService(mock_dispatcher)
        service.process_record(risky_record)
        mock_dispatcher.send.return_value = DispatchOutcome.delivered(5)
        outcomes = service.process_record(risky_record)
        assert outcomes[0].status == DispatchStatus.DELIVERED

    def test_dedupe_can_be_disabled(self, mock_dispatcher, risky_record):
        service = AlertService(mock_dispatcher, dedupe=False)
        service.process_record(risky_record)
        service.process_record(risky_record)
        assert mock_dispatcher.send.call_count == 2

    def test_notification_type_passed_to_dispatcher(self, mock_dispatcher, risky_record):
        AlertService(mock_dispatcher).process_record(risky_record)
        args = mock_dispatcher.send.call_args.args
        assert args[0] == "farmer-1"
        assert args[3] == NotificationType.BLIGHT
