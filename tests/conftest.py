"""
Shared test fixtures for the BlightWatch backend test suite.

Provides:
- In-memory SQLite database with all tables created
- File-backed database for multi-threaded tests
- Repository instances wired to the test database
- Service factories for the risk engine
- Helper utilities for seeding readings

Usage:
    def test_example(aggregator, make_reading):
        record = aggregator.fold(make_reading(temperature=15), "farmer-1")
        assert record.cri > 50
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from app.domain.alerts import DispatchOutcome
from app.domain.environment import Coordinates, EnvironmentalReading
from app.enums import DataSource
from app.services.application.alert_service import AlertService
from app.services.application.diagnosis_service import DiagnosisService
from app.services.application.environmental_collector import EnvironmentalCollector
from app.services.application.environmental_data_service import DailyAggregator
from app.services.application.notifications_service import NotificationsService
from infrastructure.database.repositories.diagnosis import DiagnosisRepository
from infrastructure.database.repositories.environment import EnvironmentalDataRepository
from infrastructure.database.repositories.farm_locations import FarmLocationRepository
from infrastructure.database.repositories.notifications import NotificationRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("app").setLevel(logging.WARNING)

FIELD = Coordinates(latitude=-1.2921, longitude=36.8219)


def _make_reading(
    temperature=22.0,
    humidity=70.0,
    rainfall=0.0,
    soil_moisture=50.0,
    *,
    timestamp: datetime | None = None,
    coordinates: Coordinates | None = FIELD,
    location_id: str | None = None,
    data_source: DataSource = DataSource.COMBINED,
) -> EnvironmentalReading:
    """Reading at the test field; defaults score exactly 50."""
    return EnvironmentalReading(
        temperature=temperature,
        humidity=humidity,
        rainfall=rainfall,
        soil_moisture=soil_moisture,
        timestamp=timestamp or datetime.now(timezone.utc),
        coordinates=coordinates,
        location_id=location_id,
        data_source=data_source,
    )


def _at(year: int, month: int, day: int, hour: int = 12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler():
    """In-memory SQLite database with all tables created.

    Each test gets a fresh database.
    Connections are per thread, so keep threaded tests on ``file_db``.
    """
    handler = SQLiteDatabaseHandler(":memory:")
    handler.create_tables()
    yield handler
    handler.close_db()


@pytest.fixture()
def file_db(tmp_path):
    """SQLite database file shared by every thread that opens it."""
    handler = SQLiteDatabaseHandler(str(tmp_path / "blightwatch_test.db"))
    handler.create_tables()
    yield handler
    handler.close_db()


# ========================== Repository Fixtures ============================


@pytest.fixture()
def environment_repo(db_handler):
    return EnvironmentalDataRepository(db_handler)


@pytest.fixture()
def diagnosis_repo(db_handler):
    return DiagnosisRepository(db_handler)


@pytest.fixture()
def notification_repo(db_handler):
    return NotificationRepository(db_handler)


@pytest.fixture()
def farm_location_repo(db_handler):
    return FarmLocationRepository(db_handler)


# ========================== Service Fixtures ===============================


@pytest.fixture()
def aggregator(environment_repo):
    return DailyAggregator(environment_repo)


@pytest.fixture()
def notifications_service(notification_repo):
    return NotificationsService(notification_repo)


@pytest.fixture()
def mock_dispatcher():
    """Dispatcher that accepts everything."""
    dispatcher = MagicMock()
    dispatcher.send.return_value = DispatchOutcome.delivered(1)
    return dispatcher


@pytest.fixture()
def alert_service(notifications_service):
    return AlertService(notifications_service)


@pytest.fixture()
def diagnosis_service(diagnosis_repo, aggregator, notifications_service):
    return DiagnosisService(diagnosis_repo, aggregator, dispatcher=notifications_service)


@pytest.fixture()
def mock_weather():
    weather = MagicMock()
    weather.fetch.return_value = {
        "temperature": 15.0,
        "humidity": 90.0,
        "rainfall": 4.0,
        "timestamp": datetime.now(timezone.utc),
        "location_label": "Nairobi",
    }
    return weather


@pytest.fixture()
def mock_soil():
    soil = MagicMock()
    soil.fetch.return_value = {"soil_moisture": 80.0, "timestamp": datetime.now(timezone.utc)}
    return soil


@pytest.fixture()
def collector(aggregator, alert_service, mock_weather, farm_location_repo):
    return EnvironmentalCollector(
        aggregator,
        alert_service,
        weather=mock_weather,
        locations=farm_location_repo,
    )


# ========================== Flask Fixtures =================================


@pytest.fixture()
def app(tmp_path, monkeypatch):
    """Application with a file database and the scheduler stopped."""
    from app import create_app

    monkeypatch.setenv("BLIGHTWATCH_SILENCE_WERKZEUG", "1")
    flask_app = create_app(
        {
            "database_path": str(tmp_path / "api_test.db"),
            "log_file": "",
            "openweather_api_key": "",
            "thingspeak_channel_id": "",
        },
        start_scheduler=False,
    )
    flask_app.config["TESTING"] = True
    yield flask_app
    flask_app.extensions["blightwatch_shutdown"]("test teardown")


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def container(app):
    return app.config["CONTAINER"]


# ========================== Helper Fixtures ================================


@pytest.fixture()
def make_reading():
    """Factory for readings at the test field (defaults score exactly 50)."""
    return _make_reading


@pytest.fixture()
def at():
    """``at(2024, 5, 1, hour=12)`` -> aware UTC datetime."""
    return _at
