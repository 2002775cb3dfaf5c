# Tagged views over the validation record written by the external callback
import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from submission_service.app.models import FieldValidation, Recommendation, ValidationRecordDB
from submission_service.app.service.exceptions import MalformedValidationResultError

APPROVE_SCORE_THRESHOLD = 0.95
REVIEW_SCORE_THRESHOLD = 0.85


def recommendation_for_score(score: float) -> Recommendation:
    if score > APPROVE_SCORE_THRESHOLD:
        return Recommendation.APPROVE
    if score > REVIEW_SCORE_THRESHOLD:
        return Recommendation.REVIEW
    return Recommendation.REJECT


class PendingValidation(BaseModel):
    status: Literal["PENDING"] = "PENDING"
    validation_id: str
    submission_id: str
    retry_count: int = 0
    created_at: datetime.datetime


class CompletedValidation(BaseModel):
    status: Literal["COMPLETED"] = "COMPLETED"
    validation_id: str
    submission_id: str
    overall_score: float = Field(ge=0.0, le=1.0)
    recommendation: Recommendation
    field_validations: List[FieldValidation] = Field(default_factory=list)
    issues_found: List[str] = Field(default_factory=list)
    processed_at: Optional[datetime.datetime] = None


class FailedValidation(BaseModel):
    status: Literal["FAILED"] = "FAILED"
    validation_id: str
    submission_id: str
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    processed_at: Optional[datetime.datetime] = None


ValidationResult = Annotated[
    Union[PendingValidation, CompletedValidation, FailedValidation],
    Field(discriminator="status"),
]
_validation_result_adapter = TypeAdapter(ValidationResult)


def to_validation_result(record: ValidationRecordDB) -> Union[PendingValidation, CompletedValidation, FailedValidation]:
    """
    Interprets a stored record as one of the tagged result types. A completed record without a
    recommendation gets one derived from its score.

    Raises:
        MalformedValidationResultError: a completed record without a usable score.
    """
    data = {
        "status": record.status,
        "validation_id": record.id,
        "submission_id": record.submission_id,
        "retry_count": record.retry_count,
        "created_at": record.created_at,
        "processed_at": record.processed_at,
        "error_type": record.error_type,
        "error_message": record.error_message,
        "field_validations": [fv.model_dump() for fv in record.field_validations],
        "issues_found": record.issues_found,
        "overall_score": record.overall_score,
        "recommendation": record.recommendation,
    }
    if record.status == "COMPLETED":
        if record.overall_score is None:
            raise MalformedValidationResultError(record.id, "completed without an overall score")
        if record.recommendation is None:
            data["recommendation"] = recommendation_for_score(record.overall_score)

    try:
        return _validation_result_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedValidationResultError(record.id, str(e)) from e
