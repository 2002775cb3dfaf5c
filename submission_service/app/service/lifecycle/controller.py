# Submission lifecycle: owns every status change of a submission
import datetime
import logging
from typing import Optional, Dict, Any, List, Union

from motor.motor_asyncio import AsyncIOMotorDatabase

from submission_service.app.models import (
    FormFieldDB,
    ReviewDecision,
    ReviewEventDB,
    SubmissionDB,
    SubmissionStatus,
    ValidationRecordDB,
    ValidationStatus,
    TERMINAL_VALIDATION_STATUSES,
)
from submission_service.app.observability import tracer, submission_transitions_counter
from submission_service.app.service.attachments.attachment_service import AttachmentService
from submission_service.app.service.exceptions import (
    InvalidTransitionError,
    RequiredFieldsMissingError,
    SubmissionNotFoundError,
)
from submission_service.app.service.lifecycle.models import (
    LabelledFile,
    LabelledValue,
    ReviewOutcome,
    SubmissionDetail,
    SubmissionState,
    SubmissionSummary,
)
from submission_service.app.service.lifecycle.state_machine import SubmissionTrigger, next_status
from submission_service.app.service.validation.dispatcher import DEFAULT_FORM_NAME, ValidationDispatcher
from submission_service.infrastructure.database import (
    attachments_store,
    forms_store,
    review_events_store,
    submissions_store,
    validation_records_store,
)

logger = logging.getLogger(__name__)

SUMMARY_FIELD_COUNT = 5
EDITABLE_STATUSES = (SubmissionStatus.DRAFT, SubmissionStatus.AI_VALIDATION_FAILED)


def is_blank(value: Union[bool, str, None]) -> bool:
    if value is None:
        return True
    if isinstance(value, bool):
        return not value
    return not str(value).strip()


class SubmissionLifecycleController:
    """
    Applies lifecycle triggers to submissions. Every status change is a compare-and-set
    write guarded on the status the transition starts from, so of two concurrent callers
    only one can win.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        dispatcher: ValidationDispatcher,
        attachment_service: AttachmentService,
        allow_submit_without_ai: bool = True,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.attachment_service = attachment_service
        self.allow_submit_without_ai = allow_submit_without_ai

    async def _load(self, submission_id: str) -> SubmissionDB:
        submission = await submissions_store.get_submission_by_id(self.db, submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        return submission

    async def _apply(
        self,
        submission: SubmissionDB,
        trigger: SubmissionTrigger,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> SubmissionDB:
        target = next_status(submission.id, submission.status, trigger)
        updated = await submissions_store.transition_submission_status(
            self.db, submission.id, SubmissionStatus(submission.status), target, extra_fields
        )
        if updated is None:
            # Lost the race: report against whatever status is stored now
            current = await self._load(submission.id)
            raise InvalidTransitionError(
                submission.id,
                current.status,
                trigger.value,
                reason="The submission changed status concurrently.",
            )
        submission_transitions_counter.add(1, {"from": submission.status, "to": target.value})
        return updated

    async def _apply_with_new_record(
        self,
        submission: SubmissionDB,
        trigger: SubmissionTrigger,
        record: ValidationRecordDB,
    ) -> SubmissionDB:
        """
        Stores the PENDING record, then claims the status transition for it. If the claim fails
        the record is removed again, so the submission never points at a record that is missing.
        """
        await validation_records_store.add_validation_record(self.db, record)
        try:
            return await self._apply(submission, trigger, {"ai_validation_id": record.id})
        except Exception:
            try:
                await validation_records_store.delete_validation_record(self.db, record.id)
            except Exception as e:
                logger.error(f"Could not remove orphaned validation record {record.id} of submission {submission.id}: {e}", exc_info=True)
            raise

    async def _restore_failed_record(self, previous: ValidationRecordDB) -> None:
        # The retry counter keeps its increment; only the failure is put back
        try:
            await validation_records_store.mark_validation_failed(
                self.db, previous.id, previous.error_type, previous.error_message
            )
        except Exception as e:
            logger.error(f"Could not restore FAILED status of validation record {previous.id}: {e}", exc_info=True)

    async def _current_record(self, submission: SubmissionDB) -> Optional[ValidationRecordDB]:
        # The record the submission points at; older submissions fall back to the latest one
        if submission.ai_validation_id:
            record = await validation_records_store.get_validation_record_by_id(self.db, submission.ai_validation_id)
            if record is not None:
                return record
        return await validation_records_store.get_latest_validation_record(self.db, submission.id)

    # --- Drafting ---

    async def create_draft(
        self,
        form_id: str,
        target_id: str,
        submitted_by: str,
        values: Optional[Dict[str, Any]] = None,
    ) -> SubmissionDB:
        submission = SubmissionDB(form_id=form_id, target_id=target_id, submitted_by=submitted_by, values=values or {})
        await submissions_store.add_submission(self.db, submission)
        return submission

    async def save_draft(
        self,
        submission_id: str,
        values: Dict[str, Any],
        raw_values: Optional[Dict[str, Any]] = None,
    ) -> SubmissionDB:
        """Persists field values. Allowed while the submission is a draft or after a failed validation."""
        submission = await self._load(submission_id)
        next_status(submission_id, submission.status, SubmissionTrigger.SAVE_DRAFT)
        updated = await submissions_store.update_submission_values(
            self.db, submission_id, values, raw_values, allowed_statuses=EDITABLE_STATUSES
        )
        if updated is None:
            current = await self._load(submission_id)
            raise InvalidTransitionError(submission_id, current.status, SubmissionTrigger.SAVE_DRAFT.value)
        return updated

    async def attach_file(
        self,
        submission_id: str,
        field_id: str,
        file_name: Optional[str],
        content: bytes,
        content_type: Optional[str] = None,
        uploaded_by: Optional[str] = None,
    ) -> SubmissionDB:
        submission = await self._load(submission_id)
        next_status(submission_id, submission.status, SubmissionTrigger.SAVE_DRAFT)
        return await self.attachment_service.upload_field_file(
            submission_id, field_id, file_name, content, content_type, uploaded_by
        )

    async def missing_required_fields(self, submission: SubmissionDB, form_fields: List[FormFieldDB]) -> List[str]:
        attachment_rows = await attachments_store.list_attachments(self.db, submission.id)
        attached_fields = {a.field_id for a in attachment_rows}
        missing = []
        for form_field in form_fields:
            if not form_field.required:
                continue
            if form_field.is_file:
                ref = submission.files.get(form_field.id)
                has_file = ref is not None and bool(ref.url or ref.storage_path)
                if not has_file and form_field.id not in attached_fields:
                    missing.append(form_field.id)
            elif is_blank(submission.values.get(form_field.id)):
                missing.append(form_field.id)
        return missing

    # --- AI validation ---

    async def submit_for_analysis(
        self,
        submission_id: str,
        values: Optional[Dict[str, Any]] = None,
        raw_values: Optional[Dict[str, Any]] = None,
    ) -> SubmissionState:
        """
        DRAFT -> PENDING_AI_VALIDATION, then dispatches the validation. The returned state reflects
        the dispatch result: still pending when accepted, AI_VALIDATION_FAILED otherwise.

        Raises:
            SubmissionNotFoundError, InvalidTransitionError, RequiredFieldsMissingError,
            ConfigurationError (nothing written in that case).
        """
        with tracer.start_as_current_span("submit_for_analysis") as span:
            span.set_attribute("submission.id", submission_id)
            submission = await self._load(submission_id)
            next_status(submission_id, submission.status, SubmissionTrigger.SUBMIT_FOR_ANALYSIS)
            self.dispatcher.ensure_configured()

            if values is not None:
                saved = await submissions_store.update_submission_values(
                    self.db, submission_id, values, raw_values, allowed_statuses=[SubmissionStatus.DRAFT]
                )
                if saved is None:
                    current = await self._load(submission_id)
                    raise InvalidTransitionError(submission_id, current.status, SubmissionTrigger.SUBMIT_FOR_ANALYSIS.value)
                submission = saved

            form_fields = await forms_store.list_form_fields(self.db, submission.form_id)
            missing = await self.missing_required_fields(submission, form_fields)
            if missing:
                raise RequiredFieldsMissingError(submission_id, submission.status, missing)

            record = ValidationRecordDB(submission_id=submission_id, status=ValidationStatus.PENDING)
            await self._apply_with_new_record(submission, SubmissionTrigger.SUBMIT_FOR_ANALYSIS, record)
            span.add_event("ValidationRecordCreated", {"validation.id": record.id})

            outcome = await self.dispatcher.dispatch(submission_id, record.id)
            return await self._state(submission_id, outcome)

    async def retry_validation(self, submission_id: str) -> SubmissionState:
        """
        AI_VALIDATION_FAILED -> PENDING_AI_VALIDATION and a fresh dispatch of the same record.
        The failed record is put back to PENDING before the status moves, so a pending
        submission is never paired with a FAILED record.
        """
        with tracer.start_as_current_span("retry_validation") as span:
            span.set_attribute("submission.id", submission_id)
            submission = await self._load(submission_id)
            next_status(submission_id, submission.status, SubmissionTrigger.RETRY_VALIDATION)
            self.dispatcher.ensure_configured()

            existing = await self._current_record(submission)
            if existing is not None and existing.status == ValidationStatus.FAILED.value:
                record = await validation_records_store.reset_validation_for_retry(self.db, existing.id)
                if record is None:
                    raise InvalidTransitionError(
                        submission_id,
                        submission.status,
                        SubmissionTrigger.RETRY_VALIDATION.value,
                        reason="The validation record changed status concurrently.",
                    )
                try:
                    await self._apply(submission, SubmissionTrigger.RETRY_VALIDATION, {"ai_validation_id": record.id})
                except Exception:
                    await self._restore_failed_record(existing)
                    raise
                validation_id = record.id
            else:
                now = datetime.datetime.now(datetime.UTC)
                record = ValidationRecordDB(
                    submission_id=submission_id,
                    status=ValidationStatus.PENDING,
                    retry_count=(existing.retry_count + 1) if existing else 1,
                    last_retry_at=now,
                )
                await self._apply_with_new_record(submission, SubmissionTrigger.RETRY_VALIDATION, record)
                validation_id = record.id

            span.set_attribute("validation.id", validation_id)
            logger.info(f"Retrying AI validation {validation_id} for submission {submission_id}.")
            outcome = await self.dispatcher.dispatch(submission_id, validation_id)
            return await self._state(submission_id, outcome)

    async def reconcile(self, submission_id: str) -> SubmissionState:
        """
        Brings the submission status in line with the validation record it points at. A pending
        submission whose record reached COMPLETED or FAILED takes the matching transition;
        anything else is left untouched. Safe to call repeatedly.

        Raises:
            MalformedValidationResultError: the stored record cannot be read.
        """
        submission = await self._load(submission_id)
        record = await self._current_record(submission)
        if (
            record is not None
            and submission.status == SubmissionStatus.PENDING_AI_VALIDATION.value
            and record.status in [s.value for s in TERMINAL_VALIDATION_STATUSES]
        ):
            trigger = (
                SubmissionTrigger.VALIDATION_COMPLETED
                if record.status == ValidationStatus.COMPLETED.value
                else SubmissionTrigger.VALIDATION_FAILED
            )
            target = next_status(submission_id, submission.status, trigger)
            updated = await submissions_store.transition_submission_status(
                self.db, submission_id, SubmissionStatus.PENDING_AI_VALIDATION, target, {"ai_validation_id": record.id}
            )
            if updated is not None:
                submission_transitions_counter.add(1, {"from": submission.status, "to": target.value})
                logger.info(f"Reconciled submission {submission_id} to {target.value} from validation {record.id}.")
                submission = updated
            else:
                submission = await self._load(submission_id)
        return SubmissionState(submission=submission, validation=record)

    # --- Human review ---

    async def submit_for_review(self, submission_id: str) -> SubmissionDB:
        submission = await self._load(submission_id)
        return await self._apply(
            submission,
            SubmissionTrigger.SUBMIT_FOR_REVIEW,
            {"submitted_at": datetime.datetime.now(datetime.UTC)},
        )

    async def submit_without_ai(self, submission_id: str, actor_id: str) -> SubmissionDB:
        """Override that skips AI validation. Disabled when `allow_submit_without_ai` is off."""
        submission = await self._load(submission_id)
        if not self.allow_submit_without_ai:
            raise InvalidTransitionError(
                submission_id,
                submission.status,
                SubmissionTrigger.SUBMIT_WITHOUT_AI.value,
                reason="Submitting without AI validation is disabled.",
            )
        updated = await self._apply(
            submission,
            SubmissionTrigger.SUBMIT_WITHOUT_AI,
            {"submitted_at": datetime.datetime.now(datetime.UTC)},
        )
        logger.warning(
            f"AI validation override: submission {submission_id} submitted without AI validation by {actor_id} "
            f"(previous status: {submission.status})."
        )
        return updated

    async def review(
        self,
        submission_id: str,
        reviewer_id: str,
        decision: ReviewDecision,
        comment: Optional[str] = None,
    ) -> ReviewOutcome:
        submission = await self._load(submission_id)
        trigger = SubmissionTrigger.APPROVE if ReviewDecision(decision) == ReviewDecision.APPROVED else SubmissionTrigger.REJECT
        updated = await self._apply(submission, trigger)
        event = ReviewEventDB(submission_id=submission_id, reviewer_id=reviewer_id, decision=decision, comment=comment)
        await review_events_store.append_review_event(self.db, event)
        return ReviewOutcome(submission=updated, review_event=event)

    # --- Reads ---

    async def _state(self, submission_id: str, outcome=None) -> SubmissionState:
        submission = await self._load(submission_id)
        record = await self._current_record(submission)
        return SubmissionState(submission=submission, validation=record, dispatch=outcome)

    async def get_state(self, submission_id: str) -> SubmissionState:
        return await self._state(submission_id)

    async def get_submission_detail(self, submission_id: str) -> SubmissionDetail:
        submission = await self._load(submission_id)
        form = await forms_store.get_form_by_id(self.db, submission.form_id)
        form_fields = await forms_store.list_form_fields(self.db, submission.form_id)

        fields = [
            LabelledValue(field_id=f.id, label=f.label, type=f.type, value=submission.values.get(f.id))
            for f in form_fields
        ]
        files = []
        for form_field in form_fields:
            ref = submission.files.get(form_field.id) if form_field.is_file else None
            if ref is None:
                continue
            files.append(LabelledFile(
                field_id=form_field.id,
                label=form_field.label,
                url=self.attachment_service.resolve_file_url(ref),
                name=ref.name,
                size=ref.size,
                mime_type=ref.mime_type,
            ))

        return SubmissionDetail(
            id=submission.id,
            form_id=submission.form_id,
            form_name=form.form_name if form else DEFAULT_FORM_NAME,
            form_description=form.description if form else None,
            target_id=submission.target_id,
            submitted_by=submission.submitted_by,
            status=submission.status,
            submitted_at=submission.submitted_at,
            updated_at=submission.updated_at,
            fields=fields,
            files=files,
            validation=await validation_records_store.get_latest_validation_record(self.db, submission_id),
        )

    async def list_user_submissions(self, submitted_by: str) -> List[SubmissionSummary]:
        submissions = await submissions_store.list_submissions(self.db, submitted_by=submitted_by)
        if not submissions:
            return []

        fields_by_form: Dict[str, List[FormFieldDB]] = {}
        form_names: Dict[str, str] = {}
        for form_id in {s.form_id for s in submissions}:
            fields_by_form[form_id] = await forms_store.list_form_fields(self.db, form_id)
            form = await forms_store.get_form_by_id(self.db, form_id)
            form_names[form_id] = form.form_name if form else DEFAULT_FORM_NAME
        file_counts = await attachments_store.count_attachments_by_submission(self.db, [s.id for s in submissions])

        summaries = []
        for submission in submissions:
            value_fields = [f for f in fields_by_form.get(submission.form_id, []) if not f.is_file]
            summaries.append(SubmissionSummary(
                id=submission.id,
                form_id=submission.form_id,
                form_name=form_names[submission.form_id],
                status=submission.status,
                submitted_at=submission.submitted_at,
                updated_at=submission.updated_at,
                files_count=file_counts.get(submission.id, 0),
                first_fields=[
                    LabelledValue(field_id=f.id, label=f.label, type=f.type, value=submission.values.get(f.id))
                    for f in value_fields[:SUMMARY_FIELD_COUNT]
                ],
            ))
        return summaries
