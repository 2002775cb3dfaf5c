import pytest
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from submission_service.app.main import app
from submission_service.app.dependencies.services import (
    get_completion_poller,
    get_deletion_service,
    get_lifecycle_controller,
)
from submission_service.app.models import ReviewEventDB, SubmissionDB, ValidationRecordDB
from submission_service.app.service.cleanup.deletion import DeletionResult
from submission_service.app.service.cleanup.protocol import CleanupReport, CleanupStepResult
from submission_service.app.service.exceptions import (
    CleanupFatalError,
    ConfigurationError,
    InvalidTransitionError,
    MalformedValidationResultError,
    RequiredFieldsMissingError,
    SubmissionNotFoundError,
)
from submission_service.app.service.lifecycle.models import ReviewOutcome, SubmissionState
from submission_service.app.service.validation.dispatcher import DispatchOutcome
from submission_service.app.service.validation.poller import ValidationCompleted, ValidationGaveUp


# --- Fixtures ---

@pytest.fixture
def mock_controller():
    return MagicMock()


@pytest.fixture
def mock_deletion_service():
    return MagicMock()


@pytest.fixture
def mock_poller():
    return MagicMock()


@pytest.fixture
def client(mock_controller, mock_deletion_service, mock_poller):
    app.dependency_overrides = {
        get_lifecycle_controller: lambda: mock_controller,
        get_deletion_service: lambda: mock_deletion_service,
        get_completion_poller: lambda: mock_poller,
    }
    yield TestClient(app)
    app.dependency_overrides = {}


def _submission(**overrides) -> SubmissionDB:
    data = {"id": "sub-1", "form_id": "form-1", "target_id": "person-1", "submitted_by": "user-1"}
    data.update(overrides)
    return SubmissionDB(**data)


# --- Tests ---

def test_create_submission(client, mock_controller):
    mock_controller.create_draft = AsyncMock(return_value=_submission(values={"f-name": "Ada"}))

    response = client.post("/api/v1/submissions", json={
        "form_id": "form-1", "target_id": "person-1", "submitted_by": "user-1", "values": {"f-name": "Ada"},
    })

    assert response.status_code == 201
    assert response.json()["status"] == "DRAFT"
    mock_controller.create_draft.assert_awaited_once_with("form-1", "person-1", "user-1", {"f-name": "Ada"})


def test_submit_for_analysis_accepted(client, mock_controller):
    record = ValidationRecordDB(id="val-1", submission_id="sub-1")
    mock_controller.submit_for_analysis = AsyncMock(return_value=SubmissionState(
        submission=_submission(status="PENDING_AI_VALIDATION", ai_validation_id="val-1"),
        validation=record,
        dispatch=DispatchOutcome(submission_id="sub-1", validation_id="val-1", accepted=True),
    ))

    response = client.post("/api/v1/submissions/sub-1/analysis", json={"values": {"f-name": "Ada"}})

    assert response.status_code == 200
    body = response.json()
    assert body["submission"]["status"] == "PENDING_AI_VALIDATION"
    assert body["dispatch"]["accepted"] is True
    mock_controller.submit_for_analysis.assert_awaited_once_with("sub-1", {"f-name": "Ada"}, None)


def test_submit_for_analysis_without_body(client, mock_controller):
    mock_controller.submit_for_analysis = AsyncMock(return_value=SubmissionState(submission=_submission(status="PENDING_AI_VALIDATION")))

    response = client.post("/api/v1/submissions/sub-1/analysis")

    assert response.status_code == 200
    mock_controller.submit_for_analysis.assert_awaited_once_with("sub-1", None, None)


def test_submit_for_analysis_missing_fields(client, mock_controller):
    mock_controller.submit_for_analysis = AsyncMock(side_effect=RequiredFieldsMissingError("sub-1", "DRAFT", ["f-name", "f-doc"]))

    response = client.post("/api/v1/submissions/sub-1/analysis", json={})

    assert response.status_code == 422
    assert response.json()["detail"]["missing_field_ids"] == ["f-name", "f-doc"]


def test_submit_for_analysis_not_configured(client, mock_controller):
    mock_controller.submit_for_analysis = AsyncMock(side_effect=ConfigurationError("AI validation webhook URL is not configured"))

    response = client.post("/api/v1/submissions/sub-1/analysis")

    assert response.status_code == 503


def test_retry_from_wrong_status(client, mock_controller):
    mock_controller.retry_validation = AsyncMock(side_effect=InvalidTransitionError("sub-1", "DRAFT", "retry validation"))

    response = client.post("/api/v1/submissions/sub-1/analysis/retry")

    assert response.status_code == 409
    assert "retry validation" in response.json()["detail"]


def test_get_submission_not_found(client, mock_controller):
    mock_controller.get_submission_detail = AsyncMock(side_effect=SubmissionNotFoundError("missing"))

    response = client.get("/api/v1/submissions/missing")

    assert response.status_code == 404


def test_get_validation_result(client, mock_controller):
    record = ValidationRecordDB(id="val-1", submission_id="sub-1", status="COMPLETED", overall_score=0.9)
    mock_controller.get_state = AsyncMock(return_value=SubmissionState(submission=_submission(status="AI_VALIDATED"), validation=record))

    response = client.get("/api/v1/submissions/sub-1/validation")

    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"
    assert response.json()["recommendation"] == "REVIEW"


def test_get_validation_result_when_none_started(client, mock_controller):
    mock_controller.get_state = AsyncMock(return_value=SubmissionState(submission=_submission()))

    response = client.get("/api/v1/submissions/sub-1/validation")

    assert response.status_code == 404


def test_get_malformed_validation_result(client, mock_controller):
    record = ValidationRecordDB(id="val-1", submission_id="sub-1", status="COMPLETED")
    mock_controller.get_state = AsyncMock(return_value=SubmissionState(submission=_submission(), validation=record))

    response = client.get("/api/v1/submissions/sub-1/validation")

    assert response.status_code == 502


def test_wait_for_validation_completed(client, mock_controller, mock_poller):
    record = ValidationRecordDB(id="val-1", submission_id="sub-1", status="FAILED", error_type="TIMEOUT")
    mock_controller.get_state = AsyncMock(return_value=SubmissionState(submission=_submission(status="PENDING_AI_VALIDATION")))
    mock_poller.wait_for_completion = AsyncMock(return_value=ValidationCompleted(
        record=record, submission=_submission(status="AI_VALIDATION_FAILED"), attempts=4,
    ))

    response = client.get("/api/v1/submissions/sub-1/validation/wait")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["attempts"] == 4
    assert body["validation"]["error_type"] == "TIMEOUT"
    assert body["submission"]["status"] == "AI_VALIDATION_FAILED"


def test_wait_for_validation_still_processing(client, mock_controller, mock_poller):
    mock_controller.get_state = AsyncMock(return_value=SubmissionState(submission=_submission(status="PENDING_AI_VALIDATION")))
    mock_poller.wait_for_completion = AsyncMock(return_value=ValidationGaveUp(attempts=20))

    response = client.get("/api/v1/submissions/sub-1/validation/wait")

    assert response.status_code == 202
    assert response.json() == {"status": "processing", "attempts": 20, "cancelled": False}


def test_wait_for_settled_submission_answers_without_polling(client, mock_controller, mock_poller):
    record = ValidationRecordDB(id="val-1", submission_id="sub-1", status="COMPLETED", overall_score=0.97)
    mock_controller.get_state = AsyncMock(return_value=SubmissionState(
        submission=_submission(status="AI_VALIDATED", ai_validation_id="val-1"), validation=record,
    ))
    mock_poller.wait_for_completion = AsyncMock()

    response = client.get("/api/v1/submissions/sub-1/validation/wait")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["attempts"] == 0
    assert body["validation"]["recommendation"] == "APPROVE"
    mock_poller.wait_for_completion.assert_not_called()


@pytest.mark.parametrize("status", ["DRAFT", "SUBMITTED"])
def test_wait_without_validation_in_progress_is_a_conflict(client, mock_controller, mock_poller, status):
    mock_controller.get_state = AsyncMock(return_value=SubmissionState(submission=_submission(status=status)))
    mock_poller.wait_for_completion = AsyncMock()

    response = client.get("/api/v1/submissions/sub-1/validation/wait")

    assert response.status_code == 409
    assert "No AI validation is in progress" in response.json()["detail"]
    mock_poller.wait_for_completion.assert_not_called()


def test_wait_with_unreadable_record_is_bad_gateway(client, mock_controller, mock_poller):
    mock_controller.get_state = AsyncMock(side_effect=MalformedValidationResultError("val-1", "status 'DONE'"))
    mock_poller.wait_for_completion = AsyncMock()

    response = client.get("/api/v1/submissions/sub-1/validation/wait")

    assert response.status_code == 502
    mock_poller.wait_for_completion.assert_not_called()


def test_review_submission(client, mock_controller):
    event = ReviewEventDB(submission_id="sub-1", reviewer_id="rev-1", decision="APPROVED", comment="fine")
    mock_controller.review = AsyncMock(return_value=ReviewOutcome(submission=_submission(status="APPROVED"), review_event=event))

    response = client.post("/api/v1/submissions/sub-1/reviews", json={"reviewer_id": "rev-1", "decision": "APPROVED", "comment": "fine"})

    assert response.status_code == 200
    assert response.json()["submission"]["status"] == "APPROVED"
    assert response.json()["review_event"]["decision"] == "APPROVED"


def test_review_with_unknown_decision(client, mock_controller):
    mock_controller.review = AsyncMock()

    response = client.post("/api/v1/submissions/sub-1/reviews", json={"reviewer_id": "rev-1", "decision": "MAYBE"})

    assert response.status_code == 422
    mock_controller.review.assert_not_called()


def test_submit_without_ai(client, mock_controller):
    mock_controller.submit_without_ai = AsyncMock(return_value=_submission(status="SUBMITTED"))

    response = client.post("/api/v1/submissions/sub-1/submit-without-ai", json={"actor_id": "admin-1"})

    assert response.status_code == 200
    mock_controller.submit_without_ai.assert_awaited_once_with("sub-1", "admin-1")


def test_delete_submission_with_cleanup(client, mock_deletion_service):
    report = CleanupReport(submission_id="sub-1", submission_deleted=True, steps=[CleanupStepResult(step="submission", deleted=1)])
    mock_deletion_service.delete = AsyncMock(return_value=DeletionResult(submission_id="sub-1", method="cleanup", report=report))

    response = client.delete("/api/v1/submissions/sub-1")

    assert response.status_code == 200
    assert response.json()["method"] == "cleanup"
    assert response.json()["report"]["submission_deleted"] is True


def test_delete_submission_fatal_cleanup(client, mock_deletion_service):
    report = CleanupReport(submission_id="sub-1", steps=[CleanupStepResult(step="submission", succeeded=False, errors=["down"])])
    mock_deletion_service.delete = AsyncMock(side_effect=CleanupFatalError(report, RuntimeError("down")))

    response = client.delete("/api/v1/submissions/sub-1")

    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail["report"]["submission_deleted"] is False
    assert detail["report"]["steps"][0]["errors"] == ["down"]


def test_unexpected_error_is_500(client, mock_controller):
    mock_controller.list_user_submissions = AsyncMock(side_effect=RuntimeError("boom"))

    response = client.get("/api/v1/submissions", params={"submitted_by": "user-1"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to list submissions."
