# Operations for the file_attachments collection (attachment metadata only)
import logging
from typing import List, Optional, Dict, Any
from motor.motor_asyncio import AsyncIOMotorDatabase

from submission_service.app.models import AttachmentDB

logger = logging.getLogger(__name__)
ATTACHMENTS_COLLECTION = "file_attachments"


async def add_attachment(db: AsyncIOMotorDatabase, attachment: AttachmentDB) -> AttachmentDB:
    await db[ATTACHMENTS_COLLECTION].insert_one(attachment.model_dump())
    logger.info(
        f"Added attachment ID: {attachment.id} for submission {attachment.submission_id} "
        f"(field: {attachment.field_id}, object: {attachment.storage_area}/{attachment.storage_path})"
    )
    return attachment

async def list_attachments(db: AsyncIOMotorDatabase, submission_id: str) -> List[AttachmentDB]:
    cursor = db[ATTACHMENTS_COLLECTION].find({"submission_id": submission_id}).sort("created_at", 1)
    documents = await cursor.to_list(length=None)
    return [AttachmentDB(**doc) for doc in documents]

async def list_attachment_rows(db: AsyncIOMotorDatabase, submission_id: str) -> List[Dict[str, Any]]:
    """
    Raw attachment rows for a submission. Older rows predate AttachmentDB and carry their
    storage location under legacy keys, so they are returned without model validation. Legacy
    rows may also lack an `id`; their Mongo `_id` is kept for deleting them.
    """
    cursor = db[ATTACHMENTS_COLLECTION].find({"submission_id": submission_id})
    return await cursor.to_list(length=None)

async def get_attachment_for_field(db: AsyncIOMotorDatabase, submission_id: str, field_id: str) -> Optional[AttachmentDB]:
    doc = await db[ATTACHMENTS_COLLECTION].find_one({"submission_id": submission_id, "field_id": field_id})
    return AttachmentDB(**doc) if doc else None

async def delete_attachment(db: AsyncIOMotorDatabase, attachment_id: str) -> int:
    result = await db[ATTACHMENTS_COLLECTION].delete_one({"id": attachment_id})
    logger.debug(f"Deleted attachment row ID: {attachment_id} (count={result.deleted_count}).")
    return result.deleted_count

async def delete_attachment_row(db: AsyncIOMotorDatabase, row_key: Any) -> int:
    result = await db[ATTACHMENTS_COLLECTION].delete_one({"_id": row_key})
    logger.debug(f"Deleted attachment row _id: {row_key} (count={result.deleted_count}).")
    return result.deleted_count

async def count_attachments_by_submission(db: AsyncIOMotorDatabase, submission_ids: List[str]) -> Dict[str, int]:
    """Number of attachment rows per submission id; submissions without attachments are omitted."""
    if not submission_ids:
        return {}
    cursor = db[ATTACHMENTS_COLLECTION].find({"submission_id": {"$in": submission_ids}}, {"submission_id": 1, "_id": 0})
    counts: Dict[str, int] = {}
    for row in await cursor.to_list(length=None):
        counts[row["submission_id"]] = counts.get(row["submission_id"], 0) + 1
    return counts
