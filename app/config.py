"""
Configuration for the BlightWatch CRI engine
============================================
Runtime settings read from ``BLIGHTWATCH_*`` environment variables, plus
the logging setup shared by the app factory and the console entry point.
"""

import logging
import os
import sys
from contextlib import suppress
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from app.constants import Intervals, Persistence
from app.domain.environment import Coordinates, FarmLocation
from app.domain.exceptions import ConfigurationError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number.") from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("BLIGHTWATCH_ENV", "development"))
    DEBUG: bool = field(default_factory=lambda: _env_bool("BLIGHTWATCH_DEBUG", False))
    secret_key: str = field(default_factory=lambda: os.getenv("BLIGHTWATCH_SECRET_KEY", "BlightWatchDevSecretKey"))
    log_level: str = field(default_factory=lambda: os.getenv("BLIGHTWATCH_LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("BLIGHTWATCH_LOG_FILE", "logs/blightwatch.log"))
    database_path: str = field(
        default_factory=lambda: os.getenv("BLIGHTWATCH_DATABASE_PATH", "database/blightwatch.db")
    )

    # External feeds
    openweather_api_key: str = field(default_factory=lambda: os.getenv("BLIGHTWATCH_OPENWEATHER_API_KEY", ""))
    openweather_base_url: str = field(
        default_factory=lambda: os.getenv(
            "BLIGHTWATCH_OPENWEATHER_BASE_URL", "https://api.openweathermap.org/data/2.5"
        )
    )
    thingspeak_channel_id: str = field(default_factory=lambda: os.getenv("BLIGHTWATCH_THINGSPEAK_CHANNEL_ID", ""))
    thingspeak_field: int = field(default_factory=lambda: _env_int("BLIGHTWATCH_THINGSPEAK_FIELD", 1))
    thingspeak_api_key: str = field(default_factory=lambda: os.getenv("BLIGHTWATCH_THINGSPEAK_API_KEY", ""))
    http_timeout_seconds: float = field(default_factory=lambda: _env_float("BLIGHTWATCH_HTTP_TIMEOUT", 10.0))

    # Default collection location (used when no farm location is registered)
    default_latitude: Optional[float] = field(default_factory=lambda: _env_float("BLIGHTWATCH_DEFAULT_LATITUDE", None))
    default_longitude: Optional[float] = field(
        default_factory=lambda: _env_float("BLIGHTWATCH_DEFAULT_LONGITUDE", None)
    )
    default_location_id: Optional[str] = field(
        default_factory=lambda: os.getenv("BLIGHTWATCH_DEFAULT_LOCATION_ID") or None
    )

    # Scheduling
    scheduler_enabled: bool = field(default_factory=lambda: _env_bool("BLIGHTWATCH_SCHEDULER_ENABLED", True))
    collection_interval_seconds: int = field(
        default_factory=lambda: _env_int("BLIGHTWATCH_COLLECTION_INTERVAL", Intervals.WEATHER_COLLECTION_DEFAULT)
    )
    scheduler_max_workers: int = field(default_factory=lambda: _env_int("BLIGHTWATCH_SCHEDULER_WORKERS", 2))
    farming_tips_enabled: bool = field(default_factory=lambda: _env_bool("BLIGHTWATCH_FARMING_TIPS_ENABLED", True))
    farming_tip_time: str = field(default_factory=lambda: os.getenv("BLIGHTWATCH_FARMING_TIP_TIME", "08:00"))

    # Persistence / alerting
    max_write_attempts: int = field(
        default_factory=lambda: _env_int("BLIGHTWATCH_MAX_WRITE_ATTEMPTS", Persistence.MAX_WRITE_ATTEMPTS)
    )
    alert_dedupe: bool = field(default_factory=lambda: _env_bool("BLIGHTWATCH_ALERT_DEDUPE", True))

    _DEFAULT_SECRET_KEY: str = field(default="BlightWatchDevSecretKey", init=False, repr=False)

    def __post_init__(self) -> None:
        if self.environment == "production" and self.secret_key == self._DEFAULT_SECRET_KEY:
            raise ConfigurationError(
                "Cannot use default secret key in production! Set BLIGHTWATCH_SECRET_KEY to a secure random value."
            )

    def default_location(self) -> Optional[FarmLocation]:
        """The configured fallback collection target, if coordinates are set."""
        if self.default_latitude is None or self.default_longitude is None:
            return None
        return FarmLocation(
            farmer_id=None,
            coordinates=Coordinates(self.default_latitude, self.default_longitude),
            location_id=self.default_location_id,
        )

    def validate(self) -> list[str]:
        """Return a list of configuration problems (empty when valid)."""
        problems = []
        if self.collection_interval_seconds <= 0:
            problems.append("collection interval must be positive")
        if self.max_write_attempts < 1:
            problems.append("max write attempts must be at least 1")
        if self.scheduler_max_workers < 1:
            problems.append("scheduler workers must be at least 1")
        if self.http_timeout_seconds is None or self.http_timeout_seconds <= 0:
            problems.append("HTTP timeout must be positive")
        if (self.default_latitude is None) != (self.default_longitude is None):
            problems.append("default latitude and longitude must be set together")
        if self.default_latitude is not None and not -90 <= self.default_latitude <= 90:
            problems.append("default latitude must be within [-90, 90]")
        if self.default_longitude is not None and not -180 <= self.default_longitude <= 180:
            problems.append("default longitude must be within [-180, 180]")
        try:
            hour, minute = (int(part) for part in self.farming_tip_time.split(":"))
            if not (0 <= hour < 24 and 0 <= minute < 60):
                raise ValueError
        except ValueError:
            problems.append(f"farming tip time must be HH:MM, got {self.farming_tip_time!r}")
        return problems

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        return {
            "ENV": self.environment,
            "SECRET_KEY": self.secret_key,
            "DATABASE_PATH": self.database_path,
            "DEBUG": self.DEBUG,
        }


def setup_logging(debug: bool = False, log_file: str = "logs/blightwatch.log") -> None:
    """Console + rotating file logging; safe to call repeatedly."""
    log_level = logging.DEBUG if debug else logging.INFO

    root = logging.getLogger()
    root.setLevel(log_level)

    has_console = any(getattr(h, "name", "") == "blightwatch_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "blightwatch_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "blightwatch_console"
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file and log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "blightwatch_file"
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"blightwatch_console", "blightwatch_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("BLIGHTWATCH_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    config = AppConfig()
    problems = config.validate()
    if problems:
        raise ConfigurationError("Invalid configuration: " + "; ".join(problems), detail={"problems": problems})
    return config
