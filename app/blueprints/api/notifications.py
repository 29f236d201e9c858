"""
Notifications API
=================

Routes:
- GET /api/notifications/<farmer_id> - notification inbox (unreadOnly, limit, offset)
- POST /api/notifications/<farmer_id>/<id>/read - mark one notification as read
- POST /api/notifications/<farmer_id>/read-all - mark the whole inbox as read
- GET /api/notifications/<farmer_id>/settings - notification preferences
- PUT /api/notifications/<farmer_id>/settings - partial preference update
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response
from pydantic import ValidationError

from app.blueprints.api._common import (
    get_json as _json,
    get_notifications_service as _notifications,
    get_query as _query,
    invalid as _invalid,
    success as _success,
)
from app.domain.exceptions import NotFoundError
from app.schemas.notifications import NotificationListQuery, UpdatePreferencesRequest
from app.utils.http import safe_route

logger = logging.getLogger("notifications_api")

notifications_api = Blueprint("notifications_api", __name__)


@notifications_api.get("/<farmer_id>")
@safe_route("Failed to get notifications")
def list_notifications(farmer_id: str) -> Response:
    try:
        query = NotificationListQuery.model_validate(_query())
    except ValidationError as ve:
        return _invalid(ve)
    return _success(_notifications().list_notifications(farmer_id, query.unread_only, query.limit, query.offset))


@notifications_api.post("/<farmer_id>/<int:notification_id>/read")
@safe_route("Failed to mark notification as read")
def mark_read(farmer_id: str, notification_id: int) -> Response:
    if not _notifications().mark_as_read(notification_id, farmer_id):
        raise NotFoundError(f"Notification {notification_id} not found")
    return _success({"notification_id": notification_id, "is_read": True})


@notifications_api.post("/<farmer_id>/read-all")
@safe_route("Failed to mark notifications as read")
def mark_all_read(farmer_id: str) -> Response:
    marked = _notifications().mark_all_read(farmer_id)
    return _success({"farmer_id": farmer_id, "marked": marked})


@notifications_api.get("/<farmer_id>/settings")
@safe_route("Failed to get notification settings")
def get_settings(farmer_id: str) -> Response:
    return _success(_notifications().get_preferences(farmer_id).to_dict())


@notifications_api.put("/<farmer_id>/settings")
@safe_route("Failed to update notification settings")
def update_settings(farmer_id: str) -> Response:
    try:
        body = UpdatePreferencesRequest.model_validate(_json())
    except ValidationError as ve:
        return _invalid(ve)
    updated = _notifications().update_preferences(farmer_id, body.model_dump(exclude_none=True))
    return _success(updated.to_dict())
