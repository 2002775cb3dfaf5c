# Operations for the ai_validations collection and the rows hanging off it
import logging
import datetime
from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ReturnDocument

from submission_service.app.models import ValidationRecordDB, ValidationStatus
from submission_service.app.service.exceptions import MalformedValidationResultError

logger = logging.getLogger(__name__)
VALIDATIONS_COLLECTION = "ai_validations"
VALIDATION_LOGS_COLLECTION = "ai_validation_logs"
DOCUMENT_VALIDATIONS_COLLECTION = "document_validations"


def _to_record(doc: Dict[str, Any]) -> ValidationRecordDB:
    try:
        return ValidationRecordDB(**doc)
    except ValidationError as e:
        raise MalformedValidationResultError(doc.get("id", "<unknown>"), str(e)) from e


async def add_validation_record(db: AsyncIOMotorDatabase, record: ValidationRecordDB) -> ValidationRecordDB:
    await db[VALIDATIONS_COLLECTION].insert_one(record.model_dump())
    logger.info(f"Added validation record ID: {record.id} (status: {record.status}) for submission {record.submission_id}")
    return record

async def get_validation_record_by_id(db: AsyncIOMotorDatabase, validation_id: str) -> Optional[ValidationRecordDB]:
    doc = await db[VALIDATIONS_COLLECTION].find_one({"id": validation_id})
    return _to_record(doc) if doc else None

async def get_latest_validation_record(db: AsyncIOMotorDatabase, submission_id: str) -> Optional[ValidationRecordDB]:
    """
    Returns the most recently created validation record of a submission, if any.

    Raises:
        MalformedValidationResultError: the stored row cannot be read as a validation record.
    """
    cursor = db[VALIDATIONS_COLLECTION].find({"submission_id": submission_id}).sort("created_at", -1).limit(1)
    documents = await cursor.to_list(length=1)
    if not documents:
        return None
    return _to_record(documents[0])

async def list_validation_record_keys(db: AsyncIOMotorDatabase, submission_id: str) -> List[Dict[str, Any]]:
    """
    `_id` and `id` of every validation record of a submission. The callback writes these rows
    directly, so cleanup works from the raw keys instead of parsing each row.
    """
    cursor = db[VALIDATIONS_COLLECTION].find({"submission_id": submission_id}, {"_id": 1, "id": 1})
    return await cursor.to_list(length=None)

async def mark_validation_failed(
    db: AsyncIOMotorDatabase,
    validation_id: str,
    error_type: str,
    error_message: str,
) -> Optional[ValidationRecordDB]:
    """
    Moves a PENDING record to FAILED with the error classification.
    A record that already reached a terminal status is left as it is and None is returned.
    """
    now = datetime.datetime.now(datetime.UTC)
    updated = await db[VALIDATIONS_COLLECTION].find_one_and_update(
        {"id": validation_id, "status": ValidationStatus.PENDING.value},
        {"$set": {
            "status": ValidationStatus.FAILED.value,
            "error_type": error_type,
            "error_message": error_message,
            "processed_at": now,
            "updated_at": now,
        }},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        logger.warning(f"Validation record ID: {validation_id} is not PENDING; failure ({error_type}) not recorded on it.")
        return None
    logger.info(f"Validation record ID: {validation_id} marked FAILED ({error_type}).")
    return _to_record(updated)

async def reset_validation_for_retry(db: AsyncIOMotorDatabase, validation_id: str) -> Optional[ValidationRecordDB]:
    """Puts a FAILED record back to PENDING, bumping its retry counter and clearing the previous error."""
    now = datetime.datetime.now(datetime.UTC)
    updated = await db[VALIDATIONS_COLLECTION].find_one_and_update(
        {"id": validation_id, "status": ValidationStatus.FAILED.value},
        {
            "$set": {
                "status": ValidationStatus.PENDING.value,
                "error_type": None,
                "error_message": None,
                "processed_at": None,
                "last_retry_at": now,
                "updated_at": now,
            },
            "$inc": {"retry_count": 1},
        },
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        logger.warning(f"Validation record ID: {validation_id} is not FAILED; retry reset skipped.")
        return None
    logger.info(f"Validation record ID: {validation_id} reset to PENDING (retry_count={updated.get('retry_count')}).")
    return _to_record(updated)

async def delete_validation_logs(db: AsyncIOMotorDatabase, validation_id: str) -> int:
    result = await db[VALIDATION_LOGS_COLLECTION].delete_many({"validation_id": validation_id})
    logger.debug(f"Deleted {result.deleted_count} validation log rows for validation ID: {validation_id}.")
    return result.deleted_count

async def delete_validation_record(db: AsyncIOMotorDatabase, validation_id: str) -> int:
    result = await db[VALIDATIONS_COLLECTION].delete_one({"id": validation_id})
    logger.debug(f"Deleted validation record ID: {validation_id} (count={result.deleted_count}).")
    return result.deleted_count

async def delete_document_validations(db: AsyncIOMotorDatabase, submission_id: str) -> int:
    result = await db[DOCUMENT_VALIDATIONS_COLLECTION].delete_many({"submission_id": submission_id})
    logger.debug(f"Deleted {result.deleted_count} document validation rows for submission ID: {submission_id}.")
    return result.deleted_count

async def delete_validation_row(db: AsyncIOMotorDatabase, row_key: Any) -> int:
    """Deletes a record by its Mongo `_id`, for rows whose `id` cannot be relied on."""
    result = await db[VALIDATIONS_COLLECTION].delete_one({"_id": row_key})
    logger.debug(f"Deleted validation row _id: {row_key} (count={result.deleted_count}).")
    return result.deleted_count
