# Client-side cascading deletion of a submission and everything hanging off it
import logging
from typing import Any, Dict, List, Optional, Iterable

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from submission_service.app.observability import tracer, cleanup_step_failures_counter
from submission_service.app.service.cleanup.storage_locations import resolve_storage_location
from submission_service.app.service.exceptions import CleanupFatalError, CleanupPartialFailure
from submission_service.app.service.interfaces.attachment_storage import AbstractAttachmentStorage
from submission_service.infrastructure.database import (
    attachments_store,
    submissions_store,
    validation_records_store,
)

logger = logging.getLogger(__name__)

STEP_VALIDATION_RECORDS = "validation_records"
STEP_DOCUMENT_VALIDATIONS = "document_validations"
STEP_ATTACHMENTS = "attachments"
STEP_SUBMISSION = "submission"


class CleanupStepResult(BaseModel):
    step: str
    succeeded: bool = True
    deleted: int = 0
    errors: List[str] = Field(default_factory=list)

    def fail(self, message: str) -> None:
        self.succeeded = False
        self.errors.append(message)


class CleanupReport(BaseModel):
    submission_id: str
    steps: List[CleanupStepResult] = Field(default_factory=list)
    submission_deleted: bool = False
    unresolved_attachments: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def failed_steps(self) -> List[CleanupStepResult]:
        return [step for step in self.steps if not step.succeeded]

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_steps or self.unresolved_attachments)


class SubmissionCleanupProtocol:
    """
    Deletes a submission in dependency order: validation logs and records, document
    validations, attachments (object then metadata row), and finally the submission row.
    Every step but the last is best-effort and its failures only end up in the report.
    Re-running on a half-deleted submission picks up whatever is left.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        storage: AbstractAttachmentStorage,
        known_areas: Iterable[str],
        default_area: str,
        public_base_url: Optional[str] = None,
    ):
        self.db = db
        self.storage = storage
        self.known_areas = list(known_areas)
        self.default_area = default_area
        self.public_base_url = public_base_url

    async def run(self, submission_id: str) -> CleanupReport:
        """
        Raises:
            CleanupFatalError: the submission row itself could not be deleted.
        """
        report = CleanupReport(submission_id=submission_id)
        with tracer.start_as_current_span("cleanup_submission") as span:
            span.set_attribute("submission.id", submission_id)

            report.steps.append(await self._delete_validation_records(submission_id))
            report.steps.append(await self._delete_document_validations(submission_id))
            report.steps.append(await self._delete_attachments(submission_id, report))

            submission_step = CleanupStepResult(step=STEP_SUBMISSION)
            report.steps.append(submission_step)
            try:
                submission_step.deleted = await submissions_store.delete_submission(self.db, submission_id)
            except Exception as e:
                submission_step.fail(str(e))
                cleanup_step_failures_counter.add(1, {"step": STEP_SUBMISSION})
                span.record_exception(e)
                logger.error(f"Failed to delete submission row {submission_id}: {e}", exc_info=True)
                raise CleanupFatalError(report, e) from e
            report.submission_deleted = True

            for step in report.failed_steps:
                cleanup_step_failures_counter.add(1, {"step": step.step})
            if report.is_partial:
                logger.warning(str(CleanupPartialFailure(report)), extra={"cleanup_report": report.model_dump()})
            else:
                logger.info(f"Submission {submission_id} and all dependent records removed.")
        return report

    async def _delete_validation_records(self, submission_id: str) -> CleanupStepResult:
        result = CleanupStepResult(step=STEP_VALIDATION_RECORDS)
        try:
            keys = await validation_records_store.list_validation_record_keys(self.db, submission_id)
        except Exception as e:
            logger.warning(f"Could not list validation records of submission {submission_id}: {e}", exc_info=True)
            result.fail(f"list: {e}")
            return result

        for key in keys:
            validation_id = key.get("id")
            label = validation_id or str(key["_id"])
            try:
                if validation_id:
                    await validation_records_store.delete_validation_logs(self.db, validation_id)
                result.deleted += await validation_records_store.delete_validation_row(self.db, key["_id"])
            except Exception as e:
                logger.warning(f"Could not delete validation record {label}: {e}", exc_info=True)
                result.fail(f"{label}: {e}")
        return result

    async def _delete_document_validations(self, submission_id: str) -> CleanupStepResult:
        result = CleanupStepResult(step=STEP_DOCUMENT_VALIDATIONS)
        try:
            result.deleted = await validation_records_store.delete_document_validations(self.db, submission_id)
        except Exception as e:
            logger.warning(f"Could not delete document validations of submission {submission_id}: {e}", exc_info=True)
            result.fail(str(e))
        return result

    async def _delete_attachments(self, submission_id: str, report: CleanupReport) -> CleanupStepResult:
        result = CleanupStepResult(step=STEP_ATTACHMENTS)
        try:
            rows = await attachments_store.list_attachment_rows(self.db, submission_id)
        except Exception as e:
            logger.warning(f"Could not list attachments of submission {submission_id}: {e}", exc_info=True)
            result.fail(f"list: {e}")
            return result

        for row in rows:
            row_key = row.pop("_id")
            row_id = row.get("id") or str(row_key)
            location = resolve_storage_location(row, self.known_areas, self.default_area, self.public_base_url)
            if location is None:
                logger.warning(f"Attachment {row_id} of submission {submission_id} has no resolvable storage location; row kept.")
                report.unresolved_attachments.append(row)
                continue

            area, path = location
            try:
                removed = await self.storage.delete(area, path)
            except Exception as e:
                # Row kept so a later run can retry the object
                logger.warning(f"Could not delete object {area}/{path} of attachment {row_id}: {e}")
                result.fail(f"{area}/{path}: {e}")
                continue
            if not removed:
                logger.info(f"Object {area}/{path} was already gone.")

            try:
                result.deleted += await attachments_store.delete_attachment_row(self.db, row_key)
            except Exception as e:
                logger.warning(f"Could not delete attachment row {row_id}: {e}", exc_info=True)
                result.fail(f"{row_id}: {e}")
        return result
