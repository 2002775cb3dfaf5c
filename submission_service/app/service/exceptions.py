"""
Custom exceptions for the Submission service.
"""
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from submission_service.app.service.cleanup.protocol import CleanupReport


class BaseSubmissionServiceError(Exception):
    """Base class for exceptions in this module."""
    pass

class SubmissionNotFoundError(BaseSubmissionServiceError):
    """Raised when a submission does not exist."""
    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__(f"Submission with ID '{submission_id}' not found.")

class InvalidTransitionError(BaseSubmissionServiceError):
    """Raised when a lifecycle action is not allowed from the submission's current status."""
    def __init__(self, submission_id: str, current_status: str, attempted_action: str, reason: Optional[str] = None):
        self.submission_id = submission_id
        self.current_status = current_status
        self.attempted_action = attempted_action
        message = f"Cannot {attempted_action} for submission '{submission_id}' in status '{current_status}'."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)

class RequiredFieldsMissingError(InvalidTransitionError):
    """Raised when submitting for analysis while required fields are still empty."""
    def __init__(self, submission_id: str, current_status: str, missing_field_ids: List[str]):
        self.missing_field_ids = missing_field_ids
        super().__init__(
            submission_id,
            current_status,
            "submit for analysis",
            reason=f"Required fields without a value: {', '.join(missing_field_ids)}.",
        )

class ValidationDispatchError(BaseSubmissionServiceError):
    """Base class for failures of the outbound AI validation call."""
    error_type: str = "NETWORK_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

class ValidationDispatchTimeoutError(ValidationDispatchError):
    """The call exceeded its wall-clock budget."""
    error_type = "TIMEOUT"

class ValidationDispatchNetworkError(ValidationDispatchError):
    """Any transport failure that is not a timeout."""
    error_type = "NETWORK_ERROR"

class ValidationDispatchServiceError(ValidationDispatchError):
    """The AI workflow answered with a non-success status."""
    error_type = "N8N_ERROR"

    def __init__(self, status_code: int, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(f"AI validation service responded with error: {status_code}")

class MalformedValidationResultError(BaseSubmissionServiceError):
    """Raised when a validation record written by the callback cannot be interpreted."""
    def __init__(self, validation_id: str, detail: str):
        self.validation_id = validation_id
        super().__init__(f"Validation record '{validation_id}' is malformed: {detail}")

class CleanupPartialFailure(BaseSubmissionServiceError):
    """Some dependent records or files could not be removed; the submission itself was deleted."""
    def __init__(self, report: "CleanupReport"):
        self.report = report
        failed = ", ".join(step.step for step in report.failed_steps) or "none"
        super().__init__(
            f"Cleanup of submission '{report.submission_id}' finished with failed steps: {failed}; "
            f"unresolved attachments: {len(report.unresolved_attachments)}."
        )

class CleanupFatalError(BaseSubmissionServiceError):
    """The submission row itself could not be deleted."""
    def __init__(self, report: "CleanupReport", cause: Optional[Exception] = None):
        self.report = report
        self.cause = cause
        super().__init__(f"Failed to delete submission '{report.submission_id}': {cause}")

class DeletionProcedureError(BaseSubmissionServiceError):
    """Raised when the server-side deletion procedure rejects or fails a request."""
    def __init__(self, submission_id: str, detail: str, status_code: Optional[int] = None):
        self.submission_id = submission_id
        self.status_code = status_code
        super().__init__(f"Deletion procedure failed for submission '{submission_id}': {detail}")

class AttachmentStorageError(BaseSubmissionServiceError):
    """Raised when the binary store fails for a reason other than a missing object."""
    pass

class ConfigurationError(BaseSubmissionServiceError):
    """Raised when a configuration issue is detected."""
    pass
