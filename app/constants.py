"""
Application Constants
=====================

Centralized constants to replace magic numbers throughout the codebase.
Organized by domain for easy discovery and maintenance.

Usage:
    from app.constants import ReadingDefaults, CRIModel, WeatherChangeThresholds
"""

# =============================================================================
# Reading defaults
# =============================================================================


class ReadingDefaults:
    """Neutral values substituted for missing or invalid readings."""
    TEMPERATURE_C = 22.0
    HUMIDITY_PCT = 70.0
    RAINFALL_MM = 0.0
    SOIL_MOISTURE_PCT = 50.0  # also the estimator's safe default


class SoilMoistureModel:
    """Linear rainfall → soil-moisture fallback model."""
    BASELINE_PCT = 40.0  # moisture at zero rainfall
    PCT_PER_MM = 2.0
    MIN_PCT = 0.0
    MAX_PCT = 100.0


# =============================================================================
# Cumulative Risk Index
# =============================================================================


class CRIModel:
    """Weights, bands and bounds of the bidirectional CRI."""
    BASELINE = 50.0
    MIN = 1.0
    MAX = 100.0
    DECIMALS = 2

    TEMPERATURE_WEIGHT = 0.4
    HUMIDITY_WEIGHT = 0.4
    SOIL_MOISTURE_WEIGHT = 0.2

    # Temperature (°C)
    COOL_MIN_C = 10.0
    COOL_MAX_C = 20.0
    WARM_MIN_C = 24.0
    WARM_MAX_C = 29.0
    TEMPERATURE_MAX_SHIFT = 25.0

    # Humidity (%)
    HUMID_ABOVE_PCT = 80.0
    DRY_BELOW_PCT = 60.0
    HUMIDITY_MAX_RISE = 30.0
    HUMIDITY_MAX_DROP = 20.0

    # Soil moisture (%)
    WET_ABOVE_PCT = 60.0
    DRY_SOIL_BELOW_PCT = 40.0
    SOIL_MAX_SHIFT = 25.0

    # Early Blight bands (CRI below baseline), lower bound inclusive
    EARLY_LOW_MIN = 40.0
    EARLY_MEDIUM_MIN = 30.0
    EARLY_HIGH_MIN = 20.0

    # Late Blight bands (CRI above baseline), upper bound inclusive
    LATE_LOW_MAX = 60.0
    LATE_MEDIUM_MAX = 70.0
    LATE_HIGH_MAX = 80.0


class Reconciliation:
    """Image-vs-environment CRI adjustment parameters."""
    MAX_SHIFT = 10.0  # points at 100% confidence
    TOWARD_NEUTRAL_SCALE = 0.5


# =============================================================================
# Alerting
# =============================================================================


class WeatherChangeThresholds:
    """Day-over-day percentage changes that warrant a weather alert."""
    TEMPERATURE_PCT = 15.0  # |change| >= threshold
    HUMIDITY_PCT = 20.0  # |change| >= threshold
    RAINFALL_PCT = 100.0  # increase only, change > threshold
    SOIL_MOISTURE_PCT = 25.0  # |change| >= threshold


# =============================================================================
# Persistence / scheduling
# =============================================================================


class Persistence:
    """Optimistic-concurrency retry budget for daily-record writes."""
    MAX_WRITE_ATTEMPTS = 5
    COORDINATE_DECIMALS = 4


class Intervals:
    """Scheduling intervals (seconds)."""
    WEATHER_COLLECTION_DEFAULT = 3 * 60 * 60
    SOIL_COLLECTION_DEFAULT = 30 * 60
    SCHEDULER_TICK = 1.0


class Pagination:
    """Default list sizes."""
    DEFAULT_LIMIT = 10
    MAX_LIMIT = 100
