import pytest

from submission_service.app.models import SubmissionStatus
from submission_service.app.service.exceptions import InvalidTransitionError
from submission_service.app.service.lifecycle.state_machine import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    SubmissionTrigger,
    next_status,
)

S = SubmissionStatus
T = SubmissionTrigger


@pytest.mark.parametrize("current, trigger, expected", [
    (S.DRAFT, T.SUBMIT_FOR_ANALYSIS, S.PENDING_AI_VALIDATION),
    (S.PENDING_AI_VALIDATION, T.VALIDATION_COMPLETED, S.AI_VALIDATED),
    (S.PENDING_AI_VALIDATION, T.VALIDATION_FAILED, S.AI_VALIDATION_FAILED),
    (S.AI_VALIDATION_FAILED, T.RETRY_VALIDATION, S.PENDING_AI_VALIDATION),
    (S.AI_VALIDATED, T.SUBMIT_FOR_REVIEW, S.SUBMITTED),
    (S.SUBMITTED, T.APPROVE, S.APPROVED),
    (S.SUBMITTED, T.REJECT, S.REJECTED),
    (S.DRAFT, T.SUBMIT_WITHOUT_AI, S.SUBMITTED),
])
def test_allowed_transitions(current, trigger, expected):
    assert next_status("sub-1", current, trigger) == expected


def test_next_status_accepts_stored_string_status():
    assert next_status("sub-1", "DRAFT", T.SAVE_DRAFT) == S.DRAFT


@pytest.mark.parametrize("current, trigger", [
    (S.DRAFT, T.APPROVE),
    (S.DRAFT, T.RETRY_VALIDATION),
    (S.PENDING_AI_VALIDATION, T.SUBMIT_FOR_ANALYSIS),
    (S.PENDING_AI_VALIDATION, T.SAVE_DRAFT),
    (S.AI_VALIDATED, T.SUBMIT_FOR_ANALYSIS),
    (S.SUBMITTED, T.SUBMIT_FOR_REVIEW),
])
def test_rejected_transitions(current, trigger):
    with pytest.raises(InvalidTransitionError) as exc_info:
        next_status("sub-1", current, trigger)

    assert exc_info.value.current_status == current.value
    assert exc_info.value.attempted_action == trigger.value


def test_terminal_statuses_have_no_outgoing_transitions():
    for (current, _trigger) in TRANSITIONS:
        assert current not in TERMINAL_STATUSES


def test_no_transition_returns_to_draft():
    assert S.DRAFT not in [target for (current, _), target in TRANSITIONS.items() if current != S.DRAFT]
