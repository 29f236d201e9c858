"""
Tests for DiagnosisService: photo lifecycle, CRI reconciliation and the
diagnosis-result notification.
"""

from unittest.mock import MagicMock

import pytest

from app.domain.diagnosis import ImageDiagnosis
from app.domain.exceptions import ConflictError, ExternalServiceError, NotFoundError, ValidationError
from app.enums import DiagnosisCondition, DiagnosisStatus, RiskLevel
from app.services.application.diagnosis_service import DiagnosisService


@pytest.fixture()
def late_record(aggregator, make_reading):
    """Today's record at CRI 77 (Late Blight, High)."""
    return aggregator.fold(make_reading(10.0, 100.0, 0.0, 100.0), "farmer-1")


class TestSubmit:
    def test_new_diagnosis_is_validated_and_pending(self, diagnosis_service):
        diagnosis = diagnosis_service.submit("farmer-1", "https://img.example/leaf.jpg")
        assert diagnosis.diagnosis_id is not None
        stored = diagnosis_service.get(diagnosis.diagnosis_id)
        assert stored.status == DiagnosisStatus.VALIDATED
        assert stored.condition == DiagnosisCondition.PENDING

    @pytest.mark.parametrize("farmer_id, url", [("", "u"), ("farmer-1", "")])
    def test_required_fields(self, diagnosis_service, farmer_id, url):
        with pytest.raises(ValidationError):
            diagnosis_service.submit(farmer_id, url)


class TestCompleteWithResult:
    def test_contradiction_adjusts_record_but_keeps_original_on_diagnosis(
        self, diagnosis_service, aggregator, late_record
    ):
        diagnosis = diagnosis_service.submit("farmer-1", "https://img.example/leaf.jpg")
        result = diagnosis_service.complete_with_result(
            diagnosis.diagnosis_id,
            ImageDiagnosis(DiagnosisCondition.EARLY_BLIGHT, 100.0, "Apply fungicide", "Concentric rings"),
        )

        assert result["diagnosis"]["cri"] == pytest.approx(77.0)
        assert result["diagnosis"]["status"] == "completed"
        assert result["diagnosis"]["symptoms"] == "Concentric rings"
        assert result["reconciliation"]["adjusted_cri"] == pytest.approx(67.0)
        assert "contradicts" in result["farmer_message"]

        record = aggregator.get(late_record.record_id)
        assert record.cri == pytest.approx(67.0)
        assert record.risk_level == RiskLevel.MEDIUM
        assert result["environmental_data"]["cri"] == pytest.approx(67.0)

    def test_agreement_has_no_message(self, diagnosis_service, aggregator, late_record):
        diagnosis = diagnosis_service.submit("farmer-1", "u")
        result = diagnosis_service.complete_with_result(
            diagnosis.diagnosis_id, ImageDiagnosis(DiagnosisCondition.LATE_BLIGHT, 88.0)
        )
        assert result["farmer_message"] == ""
        assert aggregator.get(late_record.record_id).cri == pytest.approx(77.0)

    def test_completion_sends_notification(self, diagnosis_service, notifications_service, late_record):
        diagnosis = diagnosis_service.submit("farmer-1", "u")
        diagnosis_service.complete_with_result(
            diagnosis.diagnosis_id, ImageDiagnosis(DiagnosisCondition.LATE_BLIGHT, 88.0, "Remove leaves")
        )
        inbox = notifications_service.list_notifications("farmer-1")["notifications"]
        diagnosis_notes = [n for n in inbox if n["notification_type"] == "diagnosis"]
        assert diagnosis_notes[0]["title"] == "Late Blight Detected in Your Plant"
        assert diagnosis_notes[0]["priority"] == "high"
        assert diagnosis_notes[0]["data"]["diagnosis_id"] == diagnosis.diagnosis_id

    def test_cannot_complete_twice(self, diagnosis_service, late_record):
        diagnosis = diagnosis_service.submit("farmer-1", "u")
        image = ImageDiagnosis(DiagnosisCondition.HEALTHY, 50.0)
        diagnosis_service.complete_with_result(diagnosis.diagnosis_id, image)
        with pytest.raises(ConflictError):
            diagnosis_service.complete_with_result(diagnosis.diagnosis_id, image)

    def test_second_contradiction_reports_stored_cri(self, diagnosis_service, aggregator, late_record):
        early = ImageDiagnosis(DiagnosisCondition.EARLY_BLIGHT, 100.0)
        first = diagnosis_service.submit("farmer-1", "first")
        diagnosis_service.complete_with_result(first.diagnosis_id, early)

        second = diagnosis_service.submit("farmer-1", "second")
        result = diagnosis_service.complete_with_result(second.diagnosis_id, early)

        reconciliation = result["reconciliation"]
        assert reconciliation["adjusted"] is False
        assert reconciliation["adjusted_cri"] == pytest.approx(67.0)
        assert result["environmental_data"]["cri"] == pytest.approx(67.0)
        assert "already adjusted" in result["farmer_message"]
        assert aggregator.get(late_record.record_id).cri == pytest.approx(67.0)

    def test_requires_environmental_data(self, diagnosis_service):
        diagnosis = diagnosis_service.submit("farmer-1", "u")
        with pytest.raises(NotFoundError):
            diagnosis_service.complete_with_result(diagnosis.diagnosis_id, ImageDiagnosis(DiagnosisCondition.HEALTHY, 50))

    def test_unknown_diagnosis(self, diagnosis_service):
        with pytest.raises(NotFoundError):
            diagnosis_service.get(12345)


class TestDiagnose:
    def test_without_classifier(self, diagnosis_service, late_record):
        diagnosis = diagnosis_service.submit("farmer-1", "u")
        with pytest.raises(ExternalServiceError):
            diagnosis_service.diagnose(diagnosis.diagnosis_id, b"jpeg")

    def test_classifier_receives_cri_context(self, diagnosis_repo, aggregator, late_record):
        classifier = MagicMock()
        classifier.classify.return_value = ImageDiagnosis(DiagnosisCondition.LATE_BLIGHT, 91.0)
        service = DiagnosisService(diagnosis_repo, aggregator, classifier=classifier)

        diagnosis = service.submit("farmer-1", "u")
        result = service.diagnose(diagnosis.diagnosis_id, b"jpeg")

        classifier.classify.assert_called_once_with(b"jpeg", pytest.approx(77.0))
        assert result["diagnosis"]["condition"] == "Late Blight"

    def test_classifier_failure_marks_diagnosis_failed(self, diagnosis_repo, aggregator, late_record):
        classifier = MagicMock()
        classifier.classify.side_effect = RuntimeError("model not loaded")
        service = DiagnosisService(diagnosis_repo, aggregator, classifier=classifier)

        diagnosis = service.submit("farmer-1", "u")
        with pytest.raises(ExternalServiceError):
            service.diagnose(diagnosis.diagnosis_id, b"jpeg")
        assert service.get(diagnosis.diagnosis_id).status == DiagnosisStatus.FAILED


class TestHistory:
    def test_newest_first_with_environment(self, diagnosis_service, late_record):
        first = diagnosis_service.submit("farmer-1", "first")
        diagnosis_service.complete_with_result(first.diagnosis_id, ImageDiagnosis(DiagnosisCondition.LATE_BLIGHT, 80))
        diagnosis_service.submit("farmer-1", "second")

        history = diagnosis_service.history("farmer-1", limit=10)
        assert history["pagination"]["total"] == 2
        assert [d["image_url"] for d in history["diagnoses"]] == ["second", "first"]
        assert history["diagnoses"][0]["environmental_data"] is None
        assert history["diagnoses"][1]["environmental_data"]["cri"] == pytest.approx(77.0)

    def test_pagination_bounds(self, diagnosis_service):
        with pytest.raises(ValidationError):
            diagnosis_service.history("farmer-1", limit=0)
        with pytest.raises(ValidationError):
            diagnosis_service.history("farmer-1", limit=10, offset=-1)
