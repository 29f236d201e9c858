"""
Blueprint Common Utilities
==========================

Shared helper functions for all API blueprints.

Usage:
    from app.blueprints.api._common import (
        get_container, get_json, success, fail, invalid,
    )
"""
from __future__ import annotations

import logging
from typing import Any

from flask import current_app, request
from pydantic import ValidationError

from app.utils.http import error_response, success_response

logger = logging.getLogger("api._common")


# ============================================================================
# CONTAINER ACCESS
# ============================================================================

def get_container():
    """
    Get the service container from Flask app config.

    Raises:
        RuntimeError: If container is not configured
    """
    container = current_app.config.get("CONTAINER")
    if not container:
        raise RuntimeError("ServiceContainer not found in app config")
    return container


def get_aggregator():
    return get_container().aggregator


def get_collector():
    return get_container().collector


def get_diagnosis_service():
    return get_container().diagnosis_service


def get_notifications_service():
    return get_container().notifications_service


# ============================================================================
# REQUEST HELPERS
# ============================================================================

def get_json() -> dict:
    """JSON request body, or an empty dict when missing or malformed."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def get_query() -> dict[str, Any]:
    return request.args.to_dict()


# ============================================================================
# RESPONSE HELPERS
# ============================================================================

def success(data: dict | list | None = None, status: int = 200, *, message: str | None = None):
    """Flask Response with format: {"ok": true, "data": ..., "error": null}"""
    return success_response(data, status, message=message)


def fail(message: str, status: int = 400, *, details: dict | None = None):
    """Flask Response with format: {"ok": false, "data": null, "error": {...}}"""
    return error_response(message, status, details=details)


def invalid(exc: ValidationError):
    """400 response listing pydantic validation errors."""
    errors = exc.errors(include_url=False, include_context=False, include_input=False)
    return fail("Invalid request", 400, details={"errors": errors})
