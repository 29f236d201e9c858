"""
Tests for DailyAggregator: folding into persisted day records, percentage
changes, optimistic-concurrency retries and history queries.
"""

from __future__ import annotations

import threading
from datetime import date
from unittest.mock import MagicMock

import pytest

from app.domain.diagnosis import ImageDiagnosis
from app.domain.exceptions import ConflictError, NotFoundError, ValidationError
from app.enums import BlightType, DiagnosisCondition, RiskLevel
from app.services.application.environmental_data_service import DailyAggregator, comparison_days
from infrastructure.database.repositories.environment import EnvironmentalDataRepository


class TestFold:
    def test_first_reading_inserts_at_version_one(self, aggregator, make_reading, at):
        record = aggregator.fold(make_reading(timestamp=at(2024, 5, 1)), "farmer-1")
        assert record.record_id is not None
        assert record.version == 1
        assert aggregator.find("farmer-1", record.location_key, date(2024, 5, 1)) is not None

    def test_same_day_readings_share_one_record(self, aggregator, make_reading, at):
        aggregator.fold(make_reading(10.0, 90.0, 2.0, 70.0, timestamp=at(2024, 5, 1, 6)), "farmer-1")
        record = aggregator.fold(make_reading(20.0, 80.0, 1.0, 60.0, timestamp=at(2024, 5, 1, 15)), "farmer-1")

        stored = aggregator.get(record.record_id)
        assert len(stored.readings) == 2
        assert stored.temperature == pytest.approx(15.0)
        assert stored.rainfall == pytest.approx(3.0)
        assert stored.version == 2
        assert stored.cri == record.cri

    def test_days_and_farmers_are_separate(self, aggregator, make_reading, at):
        a = aggregator.fold(make_reading(timestamp=at(2024, 5, 1)), "farmer-1")
        b = aggregator.fold(make_reading(timestamp=at(2024, 5, 2)), "farmer-1")
        c = aggregator.fold(make_reading(timestamp=at(2024, 5, 1)), "farmer-2")
        assert len({a.record_id, b.record_id, c.record_id}) == 3

    def test_location_id_separates_records(self, aggregator, make_reading, at):
        a = aggregator.fold(make_reading(timestamp=at(2024, 5, 1), location_id="north"), "farmer-1")
        b = aggregator.fold(make_reading(timestamp=at(2024, 5, 1), location_id="south"), "farmer-1")
        assert a.record_id != b.record_id

    def test_daily_percentage_change_against_yesterday(self, aggregator, make_reading, at):
        aggregator.fold(make_reading(20.0, 60.0, 0.0, 50.0, timestamp=at(2024, 5, 1)), "farmer-1")
        record = aggregator.fold(make_reading(25.0, 90.0, 0.0, 50.0, timestamp=at(2024, 5, 2)), "farmer-1")
        daily = record.percentage_changes["daily"]
        assert daily["temperature"] == pytest.approx(25.0)
        assert daily["humidity"] == pytest.approx(50.0)
        assert "weekly" not in record.percentage_changes

    def test_comparison_days(self):
        days = comparison_days(date(2024, 3, 31))
        assert [d.isoformat() for d in days.values()] == ["2024-03-30", "2024-03-24", "2024-02-29"]

    def test_requires_positive_attempts(self, environment_repo):
        with pytest.raises(ValueError):
            DailyAggregator(environment_repo, max_attempts=0)


class TestConcurrency:
    def test_lost_cas_retries_from_fresh_row(self, environment_repo, make_reading, at):
        DailyAggregator(environment_repo).fold(make_reading(timestamp=at(2024, 5, 1)), "farmer-1")
        other = DailyAggregator(environment_repo)
        repo = MagicMock(wraps=environment_repo)

        def compare_and_swap(record):
            if repo.compare_and_swap.call_count == 1:
                # another writer lands between our load and our write
                other.fold(make_reading(timestamp=at(2024, 5, 1)), "farmer-1")
            return environment_repo.compare_and_swap(record)

        repo.compare_and_swap.side_effect = compare_and_swap
        record = DailyAggregator(repo, max_attempts=3).fold(make_reading(timestamp=at(2024, 5, 1)), "farmer-1")

        assert repo.compare_and_swap.call_count == 2
        assert len(record.readings) == 3
        assert environment_repo.get(record.record_id).version == 3

    def test_gives_up_after_max_attempts(self, environment_repo, make_reading, at):
        DailyAggregator(environment_repo).fold(make_reading(timestamp=at(2024, 5, 1)), "farmer-1")
        repo = MagicMock(wraps=environment_repo)
        repo.compare_and_swap.side_effect = None
        repo.compare_and_swap.return_value = False

        with pytest.raises(ConflictError):
            DailyAggregator(repo, max_attempts=2).fold(make_reading(timestamp=at(2024, 5, 1)), "farmer-1")
        assert repo.compare_and_swap.call_count == 2

    def test_racing_insert_becomes_update(self, environment_repo, make_reading, at):
        other = DailyAggregator(environment_repo)
        repo = MagicMock(wraps=environment_repo)
        lookups = []

        def find(*args):
            lookups.append(args)
            if len(lookups) == 1:
                # the day is created right after our lookup missed it
                other.fold(make_reading(timestamp=at(2024, 5, 1)), "farmer-1")
                return None
            return environment_repo.find(*args)

        repo.find.side_effect = find
        record = DailyAggregator(repo).fold(make_reading(timestamp=at(2024, 5, 1)), "farmer-1")
        assert len(record.readings) == 2
        assert record.version == 2

    def test_parallel_writers_keep_every_reading(self, file_db, make_reading, at):
        aggregator = DailyAggregator(EnvironmentalDataRepository(file_db), max_attempts=100)
        errors: list[Exception] = []

        def writer():
            try:
                for _ in range(5):
                    aggregator.fold(make_reading(timestamp=at(2024, 5, 1)), "farmer-1")
            except Exception as exc:
                errors.append(exc)
            finally:
                file_db.close_db()

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        record = aggregator.latest("farmer-1")
        assert len(record.readings) == 20
        assert record.version == 20


class TestReconciliation:
    def _late_record(self, aggregator, make_reading, at):
        # 10°C / 100% / wet soil -> CRI 77, Late Blight High
        return aggregator.fold(make_reading(10.0, 100.0, 0.0, 100.0, timestamp=at(2024, 5, 1)), "farmer-1")

    def test_contradiction_adjusts_and_reclassifies(self, aggregator, make_reading, at):
        record = self._late_record(aggregator, make_reading, at)
        updated, result = aggregator.apply_reconciliation(
            record.record_id, ImageDiagnosis(DiagnosisCondition.EARLY_BLIGHT, 100.0), diagnosis_id=7
        )
        assert result.original_cri == pytest.approx(77.0)
        assert updated.cri == pytest.approx(67.0)
        assert updated.risk_level == RiskLevel.MEDIUM
        assert updated.blight_type == BlightType.LATE_BLIGHT
        assert updated.adjusted_by_diagnosis_id == 7
        assert aggregator.get(record.record_id).cri == pytest.approx(67.0)

    def test_agreement_leaves_record_untouched(self, aggregator, make_reading, at):
        record = self._late_record(aggregator, make_reading, at)
        updated, result = aggregator.apply_reconciliation(
            record.record_id, ImageDiagnosis(DiagnosisCondition.LATE_BLIGHT, 90.0), diagnosis_id=1
        )
        assert not result.adjusted
        assert updated.version == record.version

    def test_adjusts_once_per_fold(self, aggregator, make_reading, at):
        record = self._late_record(aggregator, make_reading, at)
        early = ImageDiagnosis(DiagnosisCondition.EARLY_BLIGHT, 100.0)
        aggregator.apply_reconciliation(record.record_id, early, diagnosis_id=1)
        second, result = aggregator.apply_reconciliation(record.record_id, early, diagnosis_id=2)
        assert second.cri == pytest.approx(67.0)
        assert second.adjusted_by_diagnosis_id == 1

        # the result describes what was stored, not the adjustment it skipped
        assert not result.adjusted
        assert result.original_cri == pytest.approx(67.0)
        assert result.adjusted_cri == pytest.approx(67.0)
        assert result.contradiction
        assert "already adjusted" in result.farmer_message
        assert "will adjust" not in result.farmer_message

        # a new reading recomputes the CRI and re-arms reconciliation
        refolded = aggregator.fold(make_reading(10.0, 100.0, 0.0, 100.0, timestamp=at(2024, 5, 1)), "farmer-1")
        assert refolded.adjusted_by_diagnosis_id is None
        assert refolded.cri == pytest.approx(77.0)

    def test_missing_record(self, aggregator):
        with pytest.raises(NotFoundError):
            aggregator.apply_reconciliation(999, ImageDiagnosis(DiagnosisCondition.HEALTHY, 50.0), diagnosis_id=1)


class TestQueries:
    def test_latest_and_range(self, aggregator, make_reading, at):
        for day in (1, 2, 3):
            aggregator.fold(make_reading(timestamp=at(2024, 5, day)), "farmer-1")

        assert aggregator.latest("farmer-1").day == date(2024, 5, 3)
        assert aggregator.latest("farmer-1", on_or_before=date(2024, 5, 2)).day == date(2024, 5, 2)
        assert aggregator.latest("nobody") is None

        records = aggregator.records_between("farmer-1", date(2024, 5, 2), date(2024, 5, 3))
        assert [r.day.day for r in records] == [2, 3]

    def test_range_rejects_reversed_dates(self, aggregator):
        with pytest.raises(ValidationError):
            aggregator.records_between("farmer-1", date(2024, 5, 3), date(2024, 5, 1))

    def test_trend_direction(self, aggregator, make_reading, at):
        aggregator.fold(make_reading(22.0, 70.0, 0.0, 50.0, timestamp=at(2024, 5, 1)), "farmer-1")
        aggregator.fold(make_reading(15.0, 90.0, 0.0, 80.0, timestamp=at(2024, 5, 3)), "farmer-1")

        trend = aggregator.cri_trend("farmer-1", days=7, today=date(2024, 5, 3))
        assert trend["direction"] == "rising"
        assert trend["first_cri"] == 50.0
        assert len(trend["points"]) == 2
        assert trend["start"] == "2024-04-27"

    def test_trend_without_data(self, aggregator):
        trend = aggregator.cri_trend("farmer-1", days=3, today=date(2024, 5, 3))
        assert trend["points"] == []
        assert trend["direction"] == "stable"
        assert trend["change_pct"] is None

    def test_trend_rejects_zero_days(self, aggregator):
        with pytest.raises(ValidationError):
            aggregator.cri_trend("farmer-1", days=0)

    def test_insights_from_latest_and_week(self, aggregator, make_reading, at):
        aggregator.fold(make_reading(22.0, 70.0, 0.0, 50.0, timestamp=at(2024, 5, 1)), "farmer-1")
        aggregator.fold(make_reading(15.0, 90.0, 0.0, 80.0, timestamp=at(2024, 5, 3)), "farmer-1")

        result = aggregator.insights("farmer-1", today=date(2024, 5, 3))
        # 50 -> 63.5 in the Late Blight zone
        assert result.weekly_risk_change == pytest.approx(27.0)
        assert result.current_risk == pytest.approx(27.0)
        assert result.farm_health == pytest.approx(73.0)
        assert "Elevated Humidity Levels" in [i.title for i in result.insights]

    def test_insights_ignore_records_older_than_a_week(self, aggregator, make_reading, at):
        aggregator.fold(make_reading(10.0, 100.0, 0.0, 100.0, timestamp=at(2024, 4, 20)), "farmer-1")
        aggregator.fold(make_reading(timestamp=at(2024, 5, 3)), "farmer-1")

        assert aggregator.insights("farmer-1", today=date(2024, 5, 3)).weekly_risk_change == 0.0

    def test_insights_without_data(self, aggregator):
        with pytest.raises(NotFoundError):
            aggregator.insights("farmer-1", today=date(2024, 5, 3))
