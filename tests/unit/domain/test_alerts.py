"""Unit tests for the alert policy (pure evaluation, no dispatch)."""

from dataclasses import replace

import pytest

from app.domain.alerts import (
    DIAGNOSTIC_CTA,
    FARMING_TIPS,
    blight_risk_alert,
    evaluate_alerts,
    farming_tip,
    significant_changes,
    weather_change_alert,
)
from app.domain.cri import classify_cri
from app.domain.environment import fold_reading
from app.enums import BlightType, NotificationType, Priority, RiskLevel


@pytest.fixture()
def record(make_reading, at):
    return fold_reading(None, make_reading(timestamp=at(2024, 6, 3)), "farmer-1")


class TestBlightRiskAlert:
    def test_low_risk_is_silent(self, record):
        assert blight_risk_alert(record) is None

    @pytest.mark.parametrize(
        "cri, level, priority",
        [(65.0, RiskLevel.MEDIUM, Priority.MEDIUM), (75.0, RiskLevel.HIGH, Priority.HIGH),
         (90.0, RiskLevel.CRITICAL, Priority.URGENT)],
    )
    def test_priority_follows_risk(self, record, cri, level, priority):
        risk, blight = classify_cri(cri)
        alert = blight_risk_alert(replace(record, cri=cri, risk_level=risk, blight_type=blight))
        assert risk == level
        assert alert.priority == priority
        assert alert.notification_type == NotificationType.BLIGHT
        assert alert.title == f"{level.value} Risk of Late Blight Detected"
        assert f"Current CRI: {cri:.1f}" in alert.body
        assert alert.body.endswith(DIAGNOSTIC_CTA)
        assert alert.data["action"] == "diagnose"

    def test_early_blight_critical_advice(self, record):
        alert = blight_risk_alert(
            replace(record, cri=10.0, risk_level=RiskLevel.CRITICAL, blight_type=BlightType.EARLY_BLIGHT)
        )
        assert "removing severely affected plants" in alert.body
        assert alert.data["date"] == "2024-06-03"


class TestWeatherChangeAlert:
    def test_thresholds(self):
        assert significant_changes({"temperature": 14.9, "humidity": 19.9, "rainfall": 100.0, "soil_moisture": 24.9}) == []
        crossed = significant_changes({"temperature": -15.0, "humidity": 20.0, "rainfall": 150.0, "soil_moisture": 30.0})
        assert crossed == [
            "Temperature decreased by 15.0%",
            "Humidity increased by 20.0%",
            "Rainfall increased by 150.0%",
            "Soil moisture increased by 30.0%",
        ]

    def test_rainfall_drop_never_alerts(self):
        assert significant_changes({"rainfall": -100.0}) == []

    def test_only_daily_changes_count(self, record):
        weekly_only = replace(record, percentage_changes={"weekly": {"temperature": 80.0}})
        assert weather_change_alert(weekly_only) is None

    def test_single_notification_lists_every_metric(self, record):
        changed = replace(record, percentage_changes={"daily": {"temperature": 20.0, "humidity": -25.0}})
        alert = weather_change_alert(changed)
        assert alert.notification_type == NotificationType.WEATHER
        assert alert.priority == Priority.MEDIUM
        assert "Temperature increased by 20.0%" in alert.body
        assert "Humidity decreased by 25.0%" in alert.body


class TestEvaluate:
    def test_blight_then_weather(self, record):
        risky = replace(
            record,
            cri=75.0,
            risk_level=RiskLevel.HIGH,
            blight_type=BlightType.LATE_BLIGHT,
            percentage_changes={"daily": {"humidity": 40.0}},
        )
        kinds = [a.notification_type for a in evaluate_alerts(risky)]
        assert kinds == [NotificationType.BLIGHT, NotificationType.WEATHER]

    def test_quiet_day(self, record):
        assert evaluate_alerts(record) == []


class TestFarmingTip:
    def test_rotates(self):
        assert farming_tip(0) == FARMING_TIPS[0]
        assert farming_tip(len(FARMING_TIPS)) == FARMING_TIPS[0]
        assert farming_tip(len(FARMING_TIPS) + 1) == FARMING_TIPS[1]
