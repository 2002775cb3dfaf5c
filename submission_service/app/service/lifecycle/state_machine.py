# Allowed submission status changes
from enum import Enum
from typing import Dict, Tuple, Union

from submission_service.app.models import SubmissionStatus
from submission_service.app.service.exceptions import InvalidTransitionError


class SubmissionTrigger(str, Enum):
    SAVE_DRAFT = "save draft"
    SUBMIT_FOR_ANALYSIS = "submit for analysis"
    VALIDATION_COMPLETED = "complete validation"
    VALIDATION_FAILED = "fail validation"
    RETRY_VALIDATION = "retry validation"
    SUBMIT_FOR_REVIEW = "submit for review"
    SUBMIT_WITHOUT_AI = "submit without AI validation"
    APPROVE = "approve"
    REJECT = "reject"


S = SubmissionStatus
T = SubmissionTrigger

TRANSITIONS: Dict[Tuple[SubmissionStatus, SubmissionTrigger], SubmissionStatus] = {
    (S.DRAFT, T.SAVE_DRAFT): S.DRAFT,
    (S.AI_VALIDATION_FAILED, T.SAVE_DRAFT): S.AI_VALIDATION_FAILED, # values may be fixed before a retry
    (S.DRAFT, T.SUBMIT_FOR_ANALYSIS): S.PENDING_AI_VALIDATION,
    (S.PENDING_AI_VALIDATION, T.VALIDATION_COMPLETED): S.AI_VALIDATED,
    (S.PENDING_AI_VALIDATION, T.VALIDATION_FAILED): S.AI_VALIDATION_FAILED,
    (S.AI_VALIDATION_FAILED, T.RETRY_VALIDATION): S.PENDING_AI_VALIDATION,
    (S.AI_VALIDATED, T.SUBMIT_FOR_REVIEW): S.SUBMITTED,
    (S.DRAFT, T.SUBMIT_WITHOUT_AI): S.SUBMITTED,
    (S.AI_VALIDATION_FAILED, T.SUBMIT_WITHOUT_AI): S.SUBMITTED,
    (S.SUBMITTED, T.APPROVE): S.APPROVED,
    (S.SUBMITTED, T.REJECT): S.REJECTED,
}

TERMINAL_STATUSES = (S.APPROVED, S.REJECTED)


def next_status(
    submission_id: str,
    current: Union[SubmissionStatus, str],
    trigger: SubmissionTrigger,
) -> SubmissionStatus:
    """
    Target status of `trigger` from `current`.

    Raises:
        InvalidTransitionError: the pair is not in the transition table.
    """
    current_status = SubmissionStatus(current)
    target = TRANSITIONS.get((current_status, trigger))
    if target is None:
        raise InvalidTransitionError(submission_id, current_status.value, trigger.value)
    return target
