# Builds the AI validation payload for a submission and sends it to the external workflow
import datetime
import logging
import time
from typing import Optional, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from opentelemetry.trace import SpanKind
from opentelemetry.trace.status import Status, StatusCode
from pydantic import BaseModel

from submission_service.app.models import (
    AIValidationRequest,
    AttachmentDB,
    PayloadField,
    PayloadFile,
    SubmissionDB,
    SubmissionStatus,
    ValidationErrorType,
    ValidationRecordDB,
    ValidationStatus,
)
from submission_service.app.observability import (
    tracer,
    submission_transitions_counter,
    validation_dispatch_counter,
    validation_dispatch_latency_histogram,
)
from submission_service.app.service.exceptions import (
    ConfigurationError,
    SubmissionNotFoundError,
    ValidationDispatchError,
)
from submission_service.app.service.interfaces.attachment_storage import AbstractAttachmentStorage
from submission_service.infrastructure.ai_validation_client import AIValidationClient
from submission_service.infrastructure.database import (
    attachments_store,
    forms_store,
    submissions_store,
    validation_records_store,
)

logger = logging.getLogger(__name__)

DEFAULT_FORM_NAME = "Untitled form"


def default_field_prompt(label: str) -> str:
    return f"Validate that the field {label} is correct"


def default_document_prompt(label: str) -> str:
    return f"Analyze the document {label}"


def file_kind(mime_type: Optional[str]) -> str:
    return "image" if mime_type and str(mime_type).startswith("image/") else "document"


class DispatchOutcome(BaseModel):
    submission_id: str
    validation_id: Optional[str] = None
    accepted: bool
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class ValidationDispatcher:
    """
    Sends one submission to the AI workflow. Failures never escape `dispatch`: they are
    classified, written to the validation record, and the submission is moved to
    AI_VALIDATION_FAILED before the outcome is returned.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        ai_client: AIValidationClient,
        storage: AbstractAttachmentStorage,
        callback_url: Optional[str] = None,
        default_area: str = "form-attachments",
    ):
        self.db = db
        self.ai_client = ai_client
        self.storage = storage
        self.callback_url = callback_url
        self.default_area = default_area

    def ensure_configured(self) -> None:
        if not self.ai_client.is_configured:
            raise ConfigurationError("AI validation webhook URL is not configured; validation cannot be started.")

    async def build_payload(self, submission: SubmissionDB) -> AIValidationRequest:
        form = await forms_store.get_form_by_id(self.db, submission.form_id)
        form_fields = await forms_store.list_form_fields(self.db, submission.form_id)
        attachments: Dict[str, AttachmentDB] = {
            a.field_id: a for a in await attachments_store.list_attachments(self.db, submission.id)
        }

        fields: List[PayloadField] = []
        files: List[PayloadFile] = []
        for form_field in form_fields:
            if not form_field.is_file:
                fields.append(PayloadField(
                    field_id=form_field.id,
                    label=form_field.label,
                    type=form_field.type,
                    value=submission.values.get(form_field.id),
                    ai_prompt=form_field.ai_validation_prompt or default_field_prompt(form_field.label),
                ))
                continue

            ref = submission.files.get(form_field.id)
            attachment = attachments.get(form_field.id)
            if ref is None and attachment is None:
                continue
            mime_type = (ref.mime_type if ref else None) or (attachment.mime_type if attachment else None)
            files.append(PayloadFile(
                field_id=form_field.id,
                label=form_field.label,
                url=self._resolve_url(ref, attachment),
                mime_type=mime_type,
                type=file_kind(mime_type),
                ai_prompt=form_field.ai_validation_prompt or default_document_prompt(form_field.label),
            ))

        missing_urls = [f.field_id for f in files if not f.url]
        if missing_urls:
            logger.warning(f"Files without a resolvable URL in payload for submission {submission.id}: {missing_urls}")

        return AIValidationRequest(
            submission_id=submission.id,
            form_id=submission.form_id,
            form_name=form.form_name if form else DEFAULT_FORM_NAME,
            callback_url=self.callback_url,
            fields=fields,
            files=files,
        )

    def _resolve_url(self, ref, attachment: Optional[AttachmentDB]) -> Optional[str]:
        if ref is not None:
            if ref.url:
                return ref.url
            if ref.storage_path:
                return self.storage.public_url(ref.storage_area or self.default_area, ref.storage_path)
        if attachment is not None and attachment.storage_path:
            return self.storage.public_url(attachment.storage_area or self.default_area, attachment.storage_path)
        return None

    async def dispatch(self, submission_id: str, validation_id: Optional[str] = None) -> DispatchOutcome:
        """
        Sends the submission to the workflow. On success the validation record stays PENDING
        until the callback completes it.

        Raises:
            SubmissionNotFoundError: the submission does not exist.
        """
        submission = await submissions_store.get_submission_by_id(self.db, submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        validation_id = validation_id or submission.ai_validation_id

        with tracer.start_as_current_span("dispatch_ai_validation", kind=SpanKind.CLIENT) as span:
            span.set_attribute("submission.id", submission_id)
            if validation_id:
                span.set_attribute("validation.id", validation_id)

            start_time = time.monotonic()
            try:
                payload = await self.build_payload(submission)
                span.add_event("PayloadBuilt", {"fields": len(payload.fields), "files": len(payload.files)})
                await self.ai_client.send_validation_request(payload)
            except ValidationDispatchError as e:
                latency = time.monotonic() - start_time
                validation_dispatch_latency_histogram.record(latency, attributes={"outcome": e.error_type})
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, description=e.error_type))
                logger.warning(f"AI validation dispatch failed for submission {submission_id}: {e.error_type} - {e.message}")
                return await self._record_failure(submission_id, validation_id, e.error_type, e.message)
            except Exception as e:
                latency = time.monotonic() - start_time
                validation_dispatch_latency_histogram.record(latency, attributes={"outcome": ValidationErrorType.NETWORK_ERROR.value})
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, description=type(e).__name__))
                logger.error(f"Unexpected error dispatching AI validation for submission {submission_id}: {e}", exc_info=True)
                return await self._record_failure(
                    submission_id,
                    validation_id,
                    ValidationErrorType.NETWORK_ERROR.value,
                    f"Unexpected error contacting AI validation service: {e}",
                )

            latency = time.monotonic() - start_time
            validation_dispatch_latency_histogram.record(latency, attributes={"outcome": "accepted"})
            validation_dispatch_counter.add(1, {"outcome": "accepted"})
            span.set_status(Status(StatusCode.OK))
            logger.info(f"AI validation dispatched for submission {submission_id} (validation {validation_id}). Latency: {latency:.4f}s")
            return DispatchOutcome(submission_id=submission_id, validation_id=validation_id, accepted=True)

    async def _record_failure(
        self,
        submission_id: str,
        validation_id: Optional[str],
        error_type: str,
        error_message: str,
    ) -> DispatchOutcome:
        validation_dispatch_counter.add(1, {"outcome": "failed", "error_type": error_type})

        existing = None
        if validation_id:
            existing = await validation_records_store.get_validation_record_by_id(self.db, validation_id)
        if existing is None:
            existing = await validation_records_store.get_latest_validation_record(self.db, submission_id)

        extra_fields = {}
        if existing is None:
            record = ValidationRecordDB(
                submission_id=submission_id,
                status=ValidationStatus.FAILED,
                error_type=error_type,
                error_message=error_message,
                processed_at=datetime.datetime.now(datetime.UTC),
            )
            await validation_records_store.add_validation_record(self.db, record)
            validation_id = record.id
            extra_fields["ai_validation_id"] = record.id
        else:
            validation_id = existing.id
            failed = await validation_records_store.mark_validation_failed(self.db, existing.id, error_type, error_message)
            if failed is None:
                # The callback already finished the record; reconcile will apply its outcome
                logger.info(f"Validation {existing.id} reached {existing.status} before the dispatch failure was recorded; leaving it as is.")
                return DispatchOutcome(
                    submission_id=submission_id,
                    validation_id=validation_id,
                    accepted=False,
                    error_type=error_type,
                    error_message=error_message,
                )

        moved = await submissions_store.transition_submission_status(
            self.db,
            submission_id,
            SubmissionStatus.PENDING_AI_VALIDATION,
            SubmissionStatus.AI_VALIDATION_FAILED,
            extra_fields=extra_fields or None,
        )
        if moved is not None:
            submission_transitions_counter.add(1, {
                "from": SubmissionStatus.PENDING_AI_VALIDATION.value,
                "to": SubmissionStatus.AI_VALIDATION_FAILED.value,
            })

        return DispatchOutcome(
            submission_id=submission_id,
            validation_id=validation_id,
            accepted=False,
            error_type=error_type,
            error_message=error_message,
        )
