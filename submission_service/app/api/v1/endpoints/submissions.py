# API Router for Form Submissions and their AI validation lifecycle
import logging
from typing import List, Optional, Dict, Any, Union

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from submission_service.app.dependencies.services import (
    get_completion_poller,
    get_deletion_service,
    get_lifecycle_controller,
)
from submission_service.app.models import SubmissionDB, SubmissionStatus, ReviewDecision, TERMINAL_VALIDATION_STATUSES
from submission_service.app.service.cleanup.deletion import DeletionResult, SubmissionDeletionService
from submission_service.app.service.exceptions import (
    BaseSubmissionServiceError,
    CleanupFatalError,
    ConfigurationError,
    DeletionProcedureError,
    InvalidTransitionError,
    MalformedValidationResultError,
    RequiredFieldsMissingError,
    SubmissionNotFoundError,
    AttachmentStorageError,
)
from submission_service.app.service.lifecycle.controller import SubmissionLifecycleController
from submission_service.app.service.lifecycle.models import (
    ReviewOutcome,
    SubmissionDetail,
    SubmissionState,
    SubmissionSummary,
)
from submission_service.app.service.validation.poller import ValidationCompleted, ValidationCompletionPoller
from submission_service.app.service.validation.results import to_validation_result

logger = logging.getLogger(__name__)
router = APIRouter()

TERMINAL_STATUS_VALUES = [s.value for s in TERMINAL_VALIDATION_STATUSES]

# --- Pydantic models for API requests ---
class CreateSubmissionRequest(BaseModel):
    form_id: str
    target_id: str
    submitted_by: str
    values: Optional[Dict[str, Union[bool, str, None]]] = None

class SaveValuesRequest(BaseModel):
    values: Dict[str, Union[bool, str, None]]
    raw_values: Optional[Dict[str, Any]] = None

class SubmitForAnalysisRequest(BaseModel):
    values: Optional[Dict[str, Union[bool, str, None]]] = None
    raw_values: Optional[Dict[str, Any]] = None

class SubmitWithoutAIRequest(BaseModel):
    actor_id: str

class ReviewRequest(BaseModel):
    reviewer_id: str
    decision: ReviewDecision
    comment: Optional[str] = None


def _to_http_exception(e: BaseSubmissionServiceError) -> HTTPException:
    if isinstance(e, SubmissionNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, RequiredFieldsMissingError):
        return HTTPException(status_code=422, detail={"message": str(e), "missing_field_ids": e.missing_field_ids})
    if isinstance(e, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, CleanupFatalError):
        return HTTPException(status_code=500, detail={"message": str(e), "report": jsonable_encoder(e.report)})
    if isinstance(e, (MalformedValidationResultError, DeletionProcedureError, AttachmentStorageError)):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


# --- API Endpoints ---

@router.post("/submissions", response_model=SubmissionDB, status_code=201, summary="Create a draft submission.")
async def create_submission_api(
    request_data: CreateSubmissionRequest = Body(...),
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
):
    try:
        return await controller.create_draft(
            request_data.form_id, request_data.target_id, request_data.submitted_by, request_data.values
        )
    except Exception as e:
        logger.error(f"Unexpected error creating submission: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create submission.")


@router.get("/submissions", response_model=List[SubmissionSummary], summary="List a submitter's submissions.")
async def list_submissions_api(
    submitted_by: str,
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
):
    try:
        return await controller.list_user_submissions(submitted_by)
    except Exception as e:
        logger.error(f"Error listing submissions for {submitted_by}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list submissions.")


@router.get("/submissions/{submission_id}", response_model=SubmissionDetail, summary="Submission with labelled values and files.")
async def get_submission_api(
    submission_id: str,
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
):
    try:
        return await controller.get_submission_detail(submission_id)
    except BaseSubmissionServiceError as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Error retrieving submission {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retrieve submission.")


@router.put("/submissions/{submission_id}/values", response_model=SubmissionDB, summary="Save draft values.")
async def save_values_api(
    submission_id: str,
    request_data: SaveValuesRequest = Body(...),
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
):
    try:
        return await controller.save_draft(submission_id, request_data.values, request_data.raw_values)
    except BaseSubmissionServiceError as e:
        logger.warning(f"Saving values of submission {submission_id} refused: {e}")
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error saving values of submission {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to save submission values.")


@router.post(
    "/submissions/{submission_id}/attachments/{field_id}",
    response_model=SubmissionDB,
    summary="Upload the file of a field, replacing any previous one.",
)
async def upload_attachment_api(
    submission_id: str,
    field_id: str,
    file: UploadFile = File(...),
    uploaded_by: Optional[str] = Form(None),
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
):
    try:
        content = await file.read()
        return await controller.attach_file(
            submission_id, field_id, file.filename, content, file.content_type, uploaded_by
        )
    except BaseSubmissionServiceError as e:
        logger.warning(f"Upload for field {field_id} of submission {submission_id} failed: {e}")
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error uploading file for submission {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to upload attachment.")


@router.post("/submissions/{submission_id}/analysis", response_model=SubmissionState, summary="Submit for AI validation.")
async def submit_for_analysis_api(
    submission_id: str,
    request_data: Optional[SubmitForAnalysisRequest] = Body(None),
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
):
    try:
        request_data = request_data or SubmitForAnalysisRequest()
        return await controller.submit_for_analysis(submission_id, request_data.values, request_data.raw_values)
    except BaseSubmissionServiceError as e:
        logger.warning(f"Submit for analysis refused for submission {submission_id}: {e}")
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error submitting {submission_id} for analysis: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit for analysis.")


@router.post("/submissions/{submission_id}/analysis/retry", response_model=SubmissionState, summary="Retry a failed AI validation.")
async def retry_analysis_api(
    submission_id: str,
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
):
    try:
        return await controller.retry_validation(submission_id)
    except BaseSubmissionServiceError as e:
        logger.warning(f"Retry refused for submission {submission_id}: {e}")
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error retrying validation of {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retry validation.")


@router.get("/submissions/{submission_id}/validation", summary="Latest AI validation result.")
async def get_validation_api(
    submission_id: str,
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
):
    try:
        state = await controller.get_state(submission_id)
        if state.validation is None:
            raise HTTPException(status_code=404, detail=f"No AI validation found for submission {submission_id}.")
        return to_validation_result(state.validation)
    except HTTPException:
        raise
    except BaseSubmissionServiceError as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Error retrieving validation of submission {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retrieve validation.")


@router.get("/submissions/{submission_id}/validation/wait", summary="Wait (bounded) for the AI validation to finish.")
async def wait_for_validation_api(
    submission_id: str,
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
    poller: ValidationCompletionPoller = Depends(get_completion_poller),
):
    """
    Polls only while the submission is PENDING_AI_VALIDATION. A submission that already settled
    is answered from its stored record right away; one with no validation running is a 409.
    """
    try:
        state = await controller.get_state(submission_id)
        if state.submission.status != SubmissionStatus.PENDING_AI_VALIDATION.value:
            if state.validation is not None and state.validation.status in TERMINAL_STATUS_VALUES:
                return {
                    "status": "completed",
                    "attempts": 0,
                    "submission": state.submission,
                    "validation": to_validation_result(state.validation),
                }
            raise InvalidTransitionError(
                submission_id,
                state.submission.status,
                "wait for validation",
                reason="No AI validation is in progress.",
            )
        outcome = await poller.wait_for_completion(submission_id)
        if isinstance(outcome, ValidationCompleted):
            return {
                "status": "completed",
                "attempts": outcome.attempts,
                "submission": outcome.submission,
                "validation": to_validation_result(outcome.record),
            }
        # Still running remotely; the client may come back later
        return JSONResponse(
            status_code=202,
            content={"status": "processing", "attempts": outcome.attempts, "cancelled": outcome.cancelled},
        )
    except BaseSubmissionServiceError as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Error waiting for validation of submission {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed while waiting for validation.")


@router.post("/submissions/{submission_id}/review-request", response_model=SubmissionDB, summary="Send a validated submission to human review.")
async def request_review_api(
    submission_id: str,
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
):
    try:
        return await controller.submit_for_review(submission_id)
    except BaseSubmissionServiceError as e:
        logger.warning(f"Review request refused for submission {submission_id}: {e}")
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error requesting review of {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit for review.")


@router.post("/submissions/{submission_id}/submit-without-ai", response_model=SubmissionDB, summary="Submit for review skipping AI validation.")
async def submit_without_ai_api(
    submission_id: str,
    request_data: SubmitWithoutAIRequest = Body(...),
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
):
    try:
        return await controller.submit_without_ai(submission_id, request_data.actor_id)
    except BaseSubmissionServiceError as e:
        logger.warning(f"Submit without AI refused for submission {submission_id}: {e}")
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error submitting {submission_id} without AI: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit without AI validation.")


@router.post("/submissions/{submission_id}/reviews", response_model=ReviewOutcome, summary="Approve or reject a submitted submission.")
async def review_submission_api(
    submission_id: str,
    request_data: ReviewRequest = Body(...),
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
):
    try:
        return await controller.review(submission_id, request_data.reviewer_id, request_data.decision, request_data.comment)
    except BaseSubmissionServiceError as e:
        logger.warning(f"Review refused for submission {submission_id}: {e}")
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error reviewing {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to record review.")


@router.delete("/submissions/{submission_id}", response_model=DeletionResult, summary="Delete a submission and its dependent data.")
async def delete_submission_api(
    submission_id: str,
    deletion_service: SubmissionDeletionService = Depends(get_deletion_service),
):
    try:
        return await deletion_service.delete(submission_id)
    except BaseSubmissionServiceError as e:
        logger.error(f"Deletion of submission {submission_id} failed: {e}")
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error deleting submission {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete submission.")
