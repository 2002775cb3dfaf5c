# Read-only access to form metadata (forms, form_fields)
import logging
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from submission_service.app.models import FormDB, FormFieldDB

logger = logging.getLogger(__name__)
FORMS_COLLECTION = "forms"
FORM_FIELDS_COLLECTION = "form_fields"


async def get_form_by_id(db: AsyncIOMotorDatabase, form_id: str) -> Optional[FormDB]:
    doc = await db[FORMS_COLLECTION].find_one({"id": form_id})
    if not doc:
        logger.warning(f"Form ID: {form_id} not found.")
        return None
    return FormDB(**doc)

async def list_form_fields(db: AsyncIOMotorDatabase, form_id: str) -> List[FormFieldDB]:
    """Fields of a form in display order."""
    cursor = db[FORM_FIELDS_COLLECTION].find({"form_id": form_id}).sort("field_order", 1)
    documents = await cursor.to_list(length=None)
    return [FormFieldDB(**doc) for doc in documents]
