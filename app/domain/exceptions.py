"""Errors raised by BlightWatch services, feeds and the SQLite layer.

``safe_route`` (``app/utils/http.py``) turns any of these into the JSON
error envelope using the class's ``http_status``; anything else becomes a
generic 500. Only 4xx messages reach the farmer verbatim.

Hierarchy
---------
::

    BlightWatchError (500)
    ├── ValidationError          (400: reading, query or payload rejected)
    ├── NotFoundError            (404: record, diagnosis or inbox entry missing)
    ├── ConflictError            (409: day record or diagnosis changed underneath us)
    ├── ServiceError             (500)
    │   ├── RepositoryError      (500: sqlite failure)
    │   └── ExternalServiceError (502: OpenWeather, ThingSpeak or the leaf classifier)
    └── ConfigurationError       (500: environment settings unusable at startup)
"""

from __future__ import annotations


class BlightWatchError(Exception):
    """Base class; ``detail`` carries the ids and values logged with the error.

    Parameters
    ----------
    message:
        What went wrong, phrased for the log (and for the farmer on 4xx).
    detail:
        Extra context such as ``record_id`` or ``farmer_id``; returned as the
        envelope's ``details`` for client errors.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(BlightWatchError):
    """A diagnosis, date range, trend window or page request the services refuse (HTTP 400).

    Raw sensor values are not rejected here: out-of-range readings are
    replaced with safe defaults and reported, not raised.
    """

    http_status: int = 400


class NotFoundError(BlightWatchError):
    """No daily record, diagnosis or notification with the given id or farmer (HTTP 404)."""

    http_status: int = 404


class ConflictError(BlightWatchError):
    """A daily record or diagnosis was written by someone else first (HTTP 409).

    The environment table raises it on a duplicate (farmer, location, day)
    insert; the aggregator raises it once its compare-and-swap retries on
    the record's version run out; completing an already completed diagnosis
    raises it too.
    """

    http_status: int = 409


# ── Server errors (5xx) ──────────────────────────────────────────────


class ServiceError(BlightWatchError):
    """Server-side failure that is not the caller's fault (HTTP 500)."""

    http_status: int = 500


class RepositoryError(ServiceError):
    """A sqlite3 error in one of the ops mixins, re-raised with the cause chained (HTTP 500)."""

    http_status: int = 500


class ExternalServiceError(ServiceError):
    """The OpenWeather or ThingSpeak client, or the image classifier, failed (HTTP 502).

    From the weather feed it makes the collector fall back to default
    readings when the day has no record yet. From the soil feed it only
    means soil moisture is estimated from rainfall.
    """

    http_status: int = 502


class ConfigurationError(BlightWatchError):
    """``load_config`` found invalid settings, or production runs on the default secret key (HTTP 500)."""

    http_status: int = 500
