# Read models returned by the lifecycle controller
import datetime
from typing import Optional, List, Union

from pydantic import BaseModel, Field

from submission_service.app.models import SubmissionDB, ValidationRecordDB, ReviewEventDB
from submission_service.app.service.validation.dispatcher import DispatchOutcome


class SubmissionState(BaseModel):
    submission: SubmissionDB
    validation: Optional[ValidationRecordDB] = None
    dispatch: Optional[DispatchOutcome] = None


class ReviewOutcome(BaseModel):
    submission: SubmissionDB
    review_event: ReviewEventDB


class LabelledValue(BaseModel):
    field_id: str
    label: str
    type: str
    value: Union[bool, str, None] = None


class LabelledFile(BaseModel):
    field_id: str
    label: str
    url: Optional[str] = None
    name: Optional[str] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None


class SubmissionDetail(BaseModel):
    id: str
    form_id: str
    form_name: str
    form_description: Optional[str] = None
    target_id: str
    submitted_by: str
    status: str
    submitted_at: Optional[datetime.datetime] = None
    updated_at: datetime.datetime
    fields: List[LabelledValue] = Field(default_factory=list)
    files: List[LabelledFile] = Field(default_factory=list)
    validation: Optional[ValidationRecordDB] = None


class SubmissionSummary(BaseModel):
    id: str
    form_id: str
    form_name: str
    status: str
    submitted_at: Optional[datetime.datetime] = None
    updated_at: datetime.datetime
    files_count: int = 0
    first_fields: List[LabelledValue] = Field(default_factory=list)
