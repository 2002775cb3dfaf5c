# Operations for the form_submissions collection
import logging
import datetime
from typing import List, Optional, Dict, Any, Iterable
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from submission_service.app.models import SubmissionDB, SubmissionStatus, AttachmentRef

logger = logging.getLogger(__name__)
SUBMISSIONS_COLLECTION = "form_submissions"


def _status_value(status) -> str:
    return status.value if isinstance(status, SubmissionStatus) else str(status)


async def add_submission(db: AsyncIOMotorDatabase, submission: SubmissionDB) -> SubmissionDB:
    """Adds a new submission record to the collection."""
    await db[SUBMISSIONS_COLLECTION].insert_one(submission.model_dump())
    logger.info(f"Added submission ID: {submission.id} for form {submission.form_id} (target: {submission.target_id})")
    return submission

async def get_submission_by_id(db: AsyncIOMotorDatabase, submission_id: str) -> Optional[SubmissionDB]:
    doc = await db[SUBMISSIONS_COLLECTION].find_one({"id": submission_id})
    if doc:
        return SubmissionDB(**doc)
    return None

async def list_submissions(
    db: AsyncIOMotorDatabase,
    submitted_by: Optional[str] = None,
    form_id: Optional[str] = None,
    target_id: Optional[str] = None,
    status: Optional[str] = None,
) -> List[SubmissionDB]:
    """Lists submissions matching the filters, most recently updated first."""
    query_filter: Dict[str, Any] = {}
    if submitted_by:
        query_filter["submitted_by"] = submitted_by
    if form_id:
        query_filter["form_id"] = form_id
    if target_id:
        query_filter["target_id"] = target_id
    if status:
        query_filter["status"] = _status_value(status)

    cursor = db[SUBMISSIONS_COLLECTION].find(query_filter).sort("updated_at", -1)
    documents = await cursor.to_list(length=None)
    return [SubmissionDB(**doc) for doc in documents]

async def update_submission_values(
    db: AsyncIOMotorDatabase,
    submission_id: str,
    values: Dict[str, Any],
    raw_values: Optional[Dict[str, Any]] = None,
    allowed_statuses: Optional[Iterable[SubmissionStatus]] = None,
) -> Optional[SubmissionDB]:
    """
    Overwrites the field values of a submission. When `allowed_statuses` is given the
    write only applies while the submission is in one of them; None is returned otherwise.
    """
    query_filter: Dict[str, Any] = {"id": submission_id}
    if allowed_statuses is not None:
        query_filter["status"] = {"$in": [_status_value(s) for s in allowed_statuses]}

    set_operations: Dict[str, Any] = {
        "values": values,
        "updated_at": datetime.datetime.now(datetime.UTC),
    }
    if raw_values is not None:
        set_operations["raw_values"] = raw_values

    updated = await db[SUBMISSIONS_COLLECTION].find_one_and_update(
        query_filter,
        {"$set": set_operations},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        logger.warning(f"Submission ID: {submission_id} not found or not editable; values not saved.")
        return None
    logger.info(f"Saved {len(values)} field values for submission ID: {submission_id}.")
    return SubmissionDB(**updated)

async def transition_submission_status(
    db: AsyncIOMotorDatabase,
    submission_id: str,
    from_status: SubmissionStatus,
    to_status: SubmissionStatus,
    extra_fields: Optional[Dict[str, Any]] = None,
) -> Optional[SubmissionDB]:
    """
    Compare-and-set status change: only applies while the stored status still equals
    `from_status`. Returns the updated submission, or None when the guard did not match.
    """
    set_operations: Dict[str, Any] = {
        "status": _status_value(to_status),
        "updated_at": datetime.datetime.now(datetime.UTC),
    }
    if extra_fields:
        set_operations.update(extra_fields)

    updated = await db[SUBMISSIONS_COLLECTION].find_one_and_update(
        {"id": submission_id, "status": _status_value(from_status)},
        {"$set": set_operations},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        logger.warning(
            f"Status transition {_status_value(from_status)} -> {_status_value(to_status)} "
            f"did not apply to submission ID: {submission_id} (missing or status changed concurrently)."
        )
        return None
    logger.info(f"Submission ID: {submission_id} moved {_status_value(from_status)} -> {_status_value(to_status)}.")
    return SubmissionDB(**updated)

async def set_submission_file(
    db: AsyncIOMotorDatabase,
    submission_id: str,
    field_id: str,
    ref: AttachmentRef,
) -> Optional[SubmissionDB]:
    updated = await db[SUBMISSIONS_COLLECTION].find_one_and_update(
        {"id": submission_id},
        {"$set": {f"files.{field_id}": ref.model_dump(), "updated_at": datetime.datetime.now(datetime.UTC)}},
        return_document=ReturnDocument.AFTER,
    )
    return SubmissionDB(**updated) if updated else None

async def delete_submission(db: AsyncIOMotorDatabase, submission_id: str) -> int:
    """Deletes the submission row. Returns the number of rows removed (0 when already gone)."""
    result = await db[SUBMISSIONS_COLLECTION].delete_one({"id": submission_id})
    if result.deleted_count:
        logger.info(f"Deleted submission ID: {submission_id}.")
    else:
        logger.info(f"Submission ID: {submission_id} was already absent; nothing deleted.")
    return result.deleted_count
