"""Unit tests for dashboard insights: risk stats, weekly change and condition rules."""

from dataclasses import replace

import pytest

from app.domain.environment import fold_reading
from app.domain.insights import build_insights, risk_and_health, weekly_risk_change


@pytest.fixture()
def record_at(make_reading, at):
    def _record(cri, temperature=22.0, humidity=70.0, rainfall=0.0, day=1):
        record = fold_reading(None, make_reading(temperature, humidity, rainfall, timestamp=at(2024, 5, day)), "farmer-1")
        return replace(record, cri=cri)

    return _record


class TestRiskAndHealth:
    @pytest.mark.parametrize(
        "cri, risk, health",
        [(50.0, 0.0, 100.0), (20.0, 60.0, 40.0), (85.0, 70.0, 30.0), (1.0, 98.0, 2.0), (100.0, 100.0, 0.0)],
    )
    def test_scales_with_distance_from_fifty(self, cri, risk, health):
        assert risk_and_health(cri) == (pytest.approx(risk), pytest.approx(health))


class TestWeeklyRiskChange:
    def test_rising_cri_in_late_zone_is_more_risk(self):
        assert weekly_risk_change(60.0, 66.0) == pytest.approx(10.0)

    def test_falling_cri_in_early_zone_is_more_risk(self):
        assert weekly_risk_change(40.0, 30.0) == pytest.approx(25.0)
        assert weekly_risk_change(30.0, 40.0) == pytest.approx(-100 / 3)

    def test_zone_follows_newest_cri(self):
        assert weekly_risk_change(45.0, 55.0) == pytest.approx(200 / 9)
        assert weekly_risk_change(55.0, 45.0) == pytest.approx(200 / 11)


class TestBuildInsights:
    def test_calm_day_has_only_standing_recommendations(self, record_at):
        latest = record_at(50.0)
        result = build_insights(latest, [latest])

        assert result.current_risk == 0.0
        assert result.farm_health == 100.0
        assert result.weekly_risk_change == 0.0
        assert result.insights == []
        assert [r.title for r in result.recommendations] == ["Schedule Disease Scouting", "Use Disease-Free Seeds"]

    def test_hot_dry_early_blight_day(self, record_at):
        latest = record_at(25.0, temperature=30.0, humidity=40.0, day=3)
        result = build_insights(latest, [record_at(40.0), latest])

        titles = [i.title for i in result.insights]
        assert titles == ["High Early Blight Risk Detected", "High Temperature Alert"]
        assert result.recommendations[0].title == "Apply Preventative Fungicide"
        assert result.recommendations[0].priority == "high"
        assert result.weekly_risk_change == 37.5
        assert result.current_risk == 50.0

    def test_cold_wet_late_blight_day(self, record_at):
        latest = record_at(80.0, temperature=12.0, humidity=95.0, rainfall=25.0)
        result = build_insights(latest, [latest])

        assert [i.title for i in result.insights] == [
            "High Late Blight Risk Detected",
            "Low Temperature Alert",
            "Elevated Humidity Levels",
            "Heavy Rainfall Alert",
        ]
        assert [r.category for r in result.recommendations] == [
            "treatment", "cultural", "treatment", "monitoring", "planting"
        ]

    def test_to_dict(self, record_at):
        latest = record_at(77.0, humidity=90.0)
        data = build_insights(latest, [latest]).to_dict()

        assert data["stats"] == {"current_risk": 54.0, "farm_health": 46.0, "weekly_risk_change": 0.0}
        assert data["insights"][0]["type"] == "critical"
        assert data["insights"][0]["icon"] == "AlertCircle"
        assert set(data["recommendations"][0]) == {"title", "description", "priority", "category"}
