"""
System API
==========

Routes:
- GET /api/health/ping - basic liveness check
- GET /api/health/scheduler - background job status and recent history
- POST /api/health/scheduler/collect - run an environmental collection now
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response

from app.blueprints.api._common import get_container as _container, success as _success
from app.utils.http import safe_route
from app.utils.time import iso_now
from app.workers.scheduled_tasks import COLLECT_TASK

logger = logging.getLogger("system_api")

system_api = Blueprint("system_api", __name__)


@system_api.get("/ping")
@safe_route("Failed to handle ping request")
def ping() -> Response:
    return _success({"status": "ok", "timestamp": iso_now()})


@system_api.get("/scheduler")
@safe_route("Failed to get scheduler status")
def scheduler_status() -> Response:
    scheduler = _container().scheduler
    status = scheduler.get_status()
    status["history"] = [r.to_dict() for r in scheduler.get_history(limit=20)]
    return _success(status)


@system_api.post("/scheduler/collect")
@safe_route("Failed to run environmental collection")
def collect_now() -> Response:
    result = _container().scheduler.run_now(COLLECT_TASK)
    return _success({**result.to_dict(), "summary": result.result}, 200 if result.success else 500)
