from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify

from app.domain.exceptions import BlightWatchError
from app.utils.time import iso_now

_log = logging.getLogger(__name__)

# Generic user-facing messages; 5xx responses never carry internals
_GENERIC_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    404: "Resource not found",
    409: "Conflict",
    422: "Unprocessable entity",
    500: "An internal error occurred",
    502: "Upstream service unavailable",
}


def safe_error(
    exc: BaseException,
    status: int = 500,
    *,
    context: str = "",
) -> Response:
    """Log ``exc`` server-side and answer with the generic message for ``status``."""
    _log.error("API error [%s] %s: %s", status, context, exc, exc_info=exc)
    message = _GENERIC_MESSAGES.get(status, _GENERIC_MESSAGES[500])
    return error_response(message, status)


def success_response(
    data: dict | list | None = None,
    status: int = 200,
    *,
    message: str | None = None,
) -> Response:
    payload: dict[str, Any] = {"ok": True, "data": data, "error": None}
    if message is not None:
        payload["message"] = message
    response = jsonify(payload)
    response.status_code = status
    return response


def error_response(
    message: str,
    status: int = 500,
    *,
    details: dict | None = None,
) -> Response:
    error: dict[str, Any] = {"message": message, "timestamp": iso_now()}
    if details:
        error["details"] = details
    response = jsonify({"ok": False, "data": None, "error": error})
    response.status_code = status
    return response


def domain_error_response(exc: BlightWatchError, context: str = "") -> Response:
    """Map a :class:`BlightWatchError` to its status; 4xx keep message and detail."""
    status = exc.http_status
    if status >= 500:
        return safe_error(exc, status, context=context or type(exc).__name__)
    return error_response(str(exc) or _GENERIC_MESSAGES.get(status, "Request failed"), status, details=exc.detail)


def safe_route(
    error_message: str = "An internal error occurred",
    *,
    error_status: int = 500,
) -> Callable:
    """Wrap a Flask route handler with standardized error handling.

    ``BlightWatchError`` subclasses map to ``exc.http_status``; anything
    else is logged and returns a generic ``error_status``.

    Usage::

        @environment_api.get("/<farmer_id>/latest")
        @safe_route("Failed to get latest environmental data")
        def latest(farmer_id):
            ...
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except BlightWatchError as exc:
                return domain_error_response(exc, error_message)
            except Exception as exc:
                return safe_error(exc, error_status, context=error_message)

        return wrapper

    return decorator
