"""
Diagnosis API
=============

Routes:
- POST /api/diagnoses - register a validated photo (status "validated")
- POST /api/diagnoses/<id>/analyze - classify an uploaded image with the configured classifier
- POST /api/diagnoses/<id>/result - complete with a classification computed by the client
- GET /api/diagnoses/<id> - one diagnosis with its environmental context
- GET /api/diagnoses?farmerId=&limit=&offset= - diagnosis history
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, request
from pydantic import ValidationError

from app.blueprints.api._common import (
    fail as _fail,
    get_diagnosis_service as _diagnosis_service,
    get_json as _json,
    get_query as _query,
    invalid as _invalid,
    success as _success,
)
from app.schemas.diagnosis import CreateDiagnosisRequest, DiagnosisHistoryQuery, DiagnosisResultRequest
from app.utils.http import safe_route

logger = logging.getLogger("diagnoses_api")

diagnoses_api = Blueprint("diagnoses_api", __name__)


@diagnoses_api.post("")
@safe_route("Failed to create diagnosis")
def create_diagnosis() -> Response:
    try:
        body = CreateDiagnosisRequest.model_validate(_json())
    except ValidationError as ve:
        return _invalid(ve)

    diagnosis = _diagnosis_service().submit(body.farmer_id, body.image_url, body.coordinates)
    return _success(diagnosis.to_dict(), 201)


@diagnoses_api.post("/<int:diagnosis_id>/analyze")
@safe_route("Failed to analyze image")
def analyze(diagnosis_id: int) -> Response:
    upload = request.files.get("image")
    if upload is None:
        return _fail("Image file is required", 400)
    image_bytes = upload.read()
    if not image_bytes:
        return _fail("Image file is empty", 400)
    return _success(_diagnosis_service().diagnose(diagnosis_id, image_bytes))


@diagnoses_api.post("/<int:diagnosis_id>/result")
@safe_route("Failed to complete diagnosis")
def complete(diagnosis_id: int) -> Response:
    try:
        body = DiagnosisResultRequest.model_validate(_json())
    except ValidationError as ve:
        return _invalid(ve)

    result = _diagnosis_service().complete_with_result(diagnosis_id, body.to_image_diagnosis())
    return _success(result)


@diagnoses_api.get("/<int:diagnosis_id>")
@safe_route("Failed to get diagnosis")
def get_diagnosis(diagnosis_id: int) -> Response:
    service = _diagnosis_service()
    return _success(service.with_environment(service.get(diagnosis_id)))


@diagnoses_api.get("")
@safe_route("Failed to get diagnosis history")
def history() -> Response:
    try:
        query = DiagnosisHistoryQuery.model_validate(_query())
    except ValidationError as ve:
        return _invalid(ve)
    return _success(_diagnosis_service().history(query.farmer_id, query.limit, query.offset))
