import datetime

import pytest

from submission_service.app.models import ValidationRecordDB
from submission_service.app.service.exceptions import MalformedValidationResultError
from submission_service.app.service.validation.results import (
    CompletedValidation,
    FailedValidation,
    PendingValidation,
    recommendation_for_score,
    to_validation_result,
)


@pytest.mark.parametrize("score, expected", [
    (0.99, "APPROVE"),
    (0.95, "REVIEW"),
    (0.9, "REVIEW"),
    (0.85, "REJECT"),
    (0.1, "REJECT"),
])
def test_recommendation_for_score(score, expected):
    assert recommendation_for_score(score).value == expected


def test_pending_record():
    record = ValidationRecordDB(submission_id="sub-1")

    result = to_validation_result(record)

    assert isinstance(result, PendingValidation)
    assert result.validation_id == record.id


def test_completed_record_from_callback_row():
    # Shape written by the external callback: string score, lowercase recommendation, per-field results
    row = {
        "id": "val-1",
        "submission_id": "sub-1",
        "status": "COMPLETED",
        "overall_score": "0.93",
        "recommendation": "review",
        "ai_results": {"f-name": {"label": "Full name", "isValid": True, "confidence": 0.98}},
        "issues_found": "Blurry document photo",
        "processed_at": datetime.datetime.now(datetime.UTC),
    }

    result = to_validation_result(ValidationRecordDB(**row))

    assert isinstance(result, CompletedValidation)
    assert result.overall_score == pytest.approx(0.93)
    assert result.recommendation.value == "REVIEW"
    assert result.field_validations[0].label == "Full name"
    assert result.field_validations[0].is_valid is True
    assert result.issues_found == ["Blurry document photo"]


def test_completed_record_without_recommendation_uses_score():
    record = ValidationRecordDB(submission_id="sub-1", status="COMPLETED", overall_score=0.97)

    result = to_validation_result(record)

    assert result.recommendation.value == "APPROVE"


def test_completed_record_without_score_is_malformed():
    record = ValidationRecordDB(submission_id="sub-1", status="COMPLETED")

    with pytest.raises(MalformedValidationResultError):
        to_validation_result(record)


def test_score_out_of_range_is_malformed():
    record = ValidationRecordDB(submission_id="sub-1", status="COMPLETED", overall_score=93, recommendation="APPROVE")

    with pytest.raises(MalformedValidationResultError):
        to_validation_result(record)


def test_failed_record():
    record = ValidationRecordDB(submission_id="sub-1", status="FAILED", error_type="TIMEOUT", error_message="late", retry_count=2)

    result = to_validation_result(record)

    assert isinstance(result, FailedValidation)
    assert result.error_type == "TIMEOUT"
    assert result.retry_count == 2


def test_unreadable_score_makes_a_completed_record_malformed():
    doc = {"submission_id": "sub-1", "status": "COMPLETED", "overall_score": "0,93", "recommendation": "APPROVED"}

    record = ValidationRecordDB(**doc)

    assert record.overall_score is None
    assert record.recommendation == "APPROVE"
    with pytest.raises(MalformedValidationResultError):
        to_validation_result(record)


@pytest.mark.parametrize("written, expected", [
    ("approved", "APPROVE"),
    (" Rejected ", "REJECT"),
    ("needs_review", "REVIEW"),
    ("MAYBE", None),
    (7, None),
])
def test_recommendation_spellings(written, expected):
    record = ValidationRecordDB(submission_id="sub-1", status="COMPLETED", overall_score=0.9, recommendation=written)

    assert record.recommendation == expected


def test_unknown_recommendation_is_derived_from_score():
    record = ValidationRecordDB(submission_id="sub-1", status="COMPLETED", overall_score="0.9", recommendation="MAYBE")

    result = to_validation_result(record)

    assert result.recommendation.value == "REVIEW"


def test_unknown_error_type_keeps_the_message():
    record = ValidationRecordDB(submission_id="sub-1", status="FAILED", error_type="WORKFLOW_CRASHED", error_message="node 4 failed")

    result = to_validation_result(record)

    assert result.error_type is None
    assert result.error_message == "node 4 failed"


def test_unreadable_field_confidence_is_dropped():
    record = ValidationRecordDB(
        submission_id="sub-1", status="COMPLETED", overall_score=0.9,
        ai_results={"f-name": {"label": "Full name", "is_valid": True, "confidence": "high"}},
    )

    assert record.field_validations[0].confidence is None
