# Bounded wait for a pending AI validation to reach a terminal status
import asyncio
import logging
from typing import Optional, Union

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from submission_service.app.models import SubmissionDB, ValidationRecordDB, TERMINAL_VALIDATION_STATUSES
from submission_service.app.observability import validation_poll_outcomes_counter
from submission_service.infrastructure.database import validation_records_store

logger = logging.getLogger(__name__)


class ValidationCompleted(BaseModel):
    record: ValidationRecordDB
    submission: SubmissionDB
    attempts: int


class ValidationGaveUp(BaseModel):
    attempts: int
    cancelled: bool = False


PollOutcome = Union[ValidationCompleted, ValidationGaveUp]


class ValidationCompletionPoller:
    """
    Re-reads the latest validation record at a fixed interval until it is terminal or the
    attempt bound is reached. Giving up is a local decision only: nothing remote is changed,
    the record may still complete later. Store errors propagate to the caller.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        controller,
        interval_seconds: float = 3.0,
        max_attempts: int = 20,
    ):
        self.db = db
        self.controller = controller # SubmissionLifecycleController, used to reconcile on completion
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self._cancel_event = asyncio.Event()

    def cancel(self) -> None:
        self._cancel_event.set()

    async def _sleep(self) -> bool:
        """Waits one interval. Returns True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=self.interval_seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def wait_for_completion(self, submission_id: str) -> PollOutcome:
        attempts = 0
        while attempts < self.max_attempts:
            if self._cancel_event.is_set() or await self._sleep():
                logger.info(f"Polling for submission {submission_id} cancelled after {attempts} attempts.")
                validation_poll_outcomes_counter.add(1, {"outcome": "cancelled"})
                return ValidationGaveUp(attempts=attempts, cancelled=True)

            attempts += 1
            record: Optional[ValidationRecordDB] = await validation_records_store.get_latest_validation_record(self.db, submission_id)
            if record is not None and record.status in [s.value for s in TERMINAL_VALIDATION_STATUSES]:
                # Reload everything from the store rather than trusting the polled row alone
                state = await self.controller.reconcile(submission_id)
                logger.info(f"Validation for submission {submission_id} reached {record.status} after {attempts} attempts.")
                validation_poll_outcomes_counter.add(1, {"outcome": "completed"})
                return ValidationCompleted(record=state.validation or record, submission=state.submission, attempts=attempts)
            logger.debug(f"Validation for submission {submission_id} not finished yet (attempt {attempts}/{self.max_attempts}).")

        logger.info(f"Gave up waiting for validation of submission {submission_id} after {attempts} attempts.")
        validation_poll_outcomes_counter.add(1, {"outcome": "gave_up"})
        return ValidationGaveUp(attempts=attempts)
