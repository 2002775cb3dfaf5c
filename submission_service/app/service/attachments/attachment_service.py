# Upload, replacement and URL resolution for submission file attachments
import datetime
import logging
from typing import Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from submission_service.app.models import AttachmentDB, AttachmentRef, SubmissionDB
from submission_service.app.service.exceptions import AttachmentStorageError, SubmissionNotFoundError
from submission_service.app.service.interfaces.attachment_storage import AbstractAttachmentStorage
from submission_service.infrastructure.database import attachments_store, submissions_store

logger = logging.getLogger(__name__)


def build_attachment_path(submission_id: str, field_id: str, file_name: Optional[str], now: Optional[datetime.datetime] = None) -> str:
    """Relative object path: `{submission_id}/{field_id}_{timestamp_ms}.{ext}`."""
    now = now or datetime.datetime.now(datetime.UTC)
    extension = "bin"
    if file_name and "." in file_name:
        extension = file_name.rsplit(".", 1)[1] or "bin"
    timestamp_ms = int(now.timestamp() * 1000)
    return f"{submission_id}/{field_id}_{timestamp_ms}.{extension}"


class AttachmentService:
    def __init__(self, db: AsyncIOMotorDatabase, storage: AbstractAttachmentStorage, default_area: str):
        self.db = db
        self.storage = storage
        self.default_area = default_area

    async def upload_field_file(
        self,
        submission_id: str,
        field_id: str,
        file_name: Optional[str],
        content: bytes,
        content_type: Optional[str] = None,
        uploaded_by: Optional[str] = None,
    ) -> SubmissionDB:
        """
        Stores a file for one field of a submission. A previous file for the same field is
        replaced: its object is removed from storage and its metadata row deleted.
        Returns the submission with the new reference in its `files` mapping.
        """
        area = self.default_area
        path = build_attachment_path(submission_id, field_id, file_name)
        await self.storage.upload(area, path, content, content_type)

        previous = await attachments_store.get_attachment_for_field(self.db, submission_id, field_id)
        if previous:
            await self._discard_previous(previous, keep=(area, path))

        attachment = AttachmentDB(
            submission_id=submission_id,
            field_id=field_id,
            storage_area=area,
            storage_path=path,
            file_name=file_name,
            size=len(content),
            mime_type=content_type,
            uploaded_by=uploaded_by,
        )
        await attachments_store.add_attachment(self.db, attachment)

        ref = AttachmentRef(
            name=file_name,
            url=self.storage.public_url(area, path),
            size=len(content),
            mime_type=content_type,
            storage_area=area,
            storage_path=path,
        )
        updated = await submissions_store.set_submission_file(self.db, submission_id, field_id, ref)
        if updated is None:
            raise SubmissionNotFoundError(submission_id)
        logger.info(f"Attached '{file_name}' to field {field_id} of submission {submission_id} at {area}/{path}.")
        return updated

    async def _discard_previous(self, previous: AttachmentDB, keep: Tuple[str, str]) -> None:
        area = previous.storage_area or self.default_area
        # Same path means the new upload already overwrote the object
        if previous.storage_path and (area, previous.storage_path) != keep:
            try:
                await self.storage.delete(area, previous.storage_path)
            except AttachmentStorageError as e:
                # Orphaned object; the row is still replaced so the field points at the new file
                logger.warning(f"Could not remove replaced object {area}/{previous.storage_path}: {e}")
        await attachments_store.delete_attachment(self.db, previous.id)
        logger.info(f"Replaced attachment ID: {previous.id} for field {previous.field_id} of submission {previous.submission_id}.")

    def resolve_file_url(self, ref: AttachmentRef) -> Optional[str]:
        """Explicit URL on the reference, else the public URL derived from its storage location."""
        if ref.url:
            return ref.url
        if ref.storage_path:
            return self.storage.public_url(ref.storage_area or self.default_area, ref.storage_path)
        return None
