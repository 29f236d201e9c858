"""
Environment API
===============

Routes:
- POST /api/environment/readings - ingest one reading (validated, folded, alerted)
- POST /api/environment/refresh - collect weather + soil for a farmer's field now
- GET /api/environment/<farmer_id>/latest - most recent daily record
- GET /api/environment/<farmer_id>/range?start=&end= - daily records in a date range
- GET /api/environment/<farmer_id>/trend?days= - CRI trend summary
- GET /api/environment/<farmer_id>/insights - risk stats, condition insights and recommendations
- GET /api/environment/forecast?lat=&lon= - per-day CRI outlook from the weather forecast
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response
from pydantic import ValidationError

from app.blueprints.api._common import (
    fail as _fail,
    get_aggregator as _aggregator,
    get_collector as _collector,
    get_container as _container,
    get_json as _json,
    get_query as _query,
    invalid as _invalid,
    success as _success,
)
from app.domain.exceptions import NotFoundError
from app.schemas.environment import ForecastQuery, RangeQuery, RefreshRequest, SubmitReadingRequest, TrendQuery
from app.utils.http import safe_route

logger = logging.getLogger("environment_api")

environment_api = Blueprint("environment_api", __name__)


@environment_api.post("/readings")
@safe_route("Failed to store environmental reading")
def submit_reading() -> Response:
    try:
        body = SubmitReadingRequest.model_validate(_json())
    except ValidationError as ve:
        return _invalid(ve)

    result = _collector().ingest(body.to_raw(), body.farmer_id)
    return _success(result.to_dict(), 201)


@environment_api.post("/refresh")
@safe_route("Failed to refresh environmental data")
def refresh() -> Response:
    """Fetch the feeds for the farmer's coordinates and register them for scheduled collection."""
    try:
        body = RefreshRequest.model_validate(_json())
    except ValidationError as ve:
        return _invalid(ve)

    location = body.to_location()
    result = _collector().refresh(location)
    if result is None:
        # weather feed down and today's record already exists
        record = _aggregator().latest(body.farmer_id, location.location_key)
        return _success(
            {"record": record.to_dict() if record else None, "refreshed": False},
            message="Weather service unavailable; returning stored data",
        )
    return _success({**result.to_dict(), "refreshed": True})


@environment_api.get("/<farmer_id>/latest")
@safe_route("Failed to get latest environmental data")
def latest(farmer_id: str) -> Response:
    record = _aggregator().latest(farmer_id, _query().get("location_key"))
    if record is None:
        raise NotFoundError("No environmental data found. Please refresh environmental data first.")
    return _success(record.to_dict())


@environment_api.get("/<farmer_id>/range")
@safe_route("Failed to get environmental history")
def history_range(farmer_id: str) -> Response:
    try:
        query = RangeQuery.model_validate(_query())
    except ValidationError as ve:
        return _invalid(ve)

    records = _aggregator().records_between(farmer_id, query.start, query.end, query.location_key)
    return _success({"records": [r.to_dict() for r in records], "count": len(records)})


@environment_api.get("/<farmer_id>/trend")
@safe_route("Failed to get CRI trend")
def trend(farmer_id: str) -> Response:
    try:
        query = TrendQuery.model_validate(_query())
    except ValidationError as ve:
        return _invalid(ve)
    return _success(_aggregator().cri_trend(farmer_id, query.days, query.location_key))


@environment_api.get("/<farmer_id>/insights")
@safe_route("Failed to generate insights")
def insights(farmer_id: str) -> Response:
    result = _aggregator().insights(farmer_id, _query().get("location_key"))
    return _success(result.to_dict(), message="Insights generated successfully")


@environment_api.get("/forecast")
@safe_route("Failed to get forecast outlook")
def forecast() -> Response:
    try:
        query = ForecastQuery.model_validate(_query())
    except ValidationError as ve:
        return _invalid(ve)

    weather = _container().weather_client
    if weather is None:
        return _fail("Weather service not configured", 503)
    outlook = weather.forecast_outlook(query.latitude, query.longitude)
    return _success({"latitude": query.latitude, "longitude": query.longitude, "days": outlook})
