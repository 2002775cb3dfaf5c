from .submission_db import SubmissionDB, SubmissionStatus, AttachmentRef
from .validation_record_db import (
    ValidationRecordDB,
    ValidationStatus,
    ValidationErrorType,
    Recommendation,
    FieldValidation,
    TERMINAL_VALIDATION_STATUSES,
)
from .attachment_db import AttachmentDB
from .review_event_db import ReviewEventDB, ReviewDecision
from .form_db import FormDB, FormFieldDB, FILE_FIELD_TYPE
from .validation_request import AIValidationRequest, PayloadField, PayloadFile

__all__ = [
    "SubmissionDB",
    "SubmissionStatus",
    "AttachmentRef",
    "ValidationRecordDB",
    "ValidationStatus",
    "ValidationErrorType",
    "Recommendation",
    "FieldValidation",
    "TERMINAL_VALIDATION_STATUSES",
    "AttachmentDB",
    "ReviewEventDB",
    "ReviewDecision",
    "FormDB",
    "FormFieldDB",
    "FILE_FIELD_TYPE",
    "AIValidationRequest",
    "PayloadField",
    "PayloadFile",
]
