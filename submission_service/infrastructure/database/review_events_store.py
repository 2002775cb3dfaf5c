# Append-only store for human review decisions (audit_reviews collection)
import logging
from typing import List
from motor.motor_asyncio import AsyncIOMotorDatabase

from submission_service.app.models import ReviewEventDB

logger = logging.getLogger(__name__)
REVIEWS_COLLECTION = "audit_reviews"


async def append_review_event(db: AsyncIOMotorDatabase, event: ReviewEventDB) -> ReviewEventDB:
    await db[REVIEWS_COLLECTION].insert_one(event.model_dump())
    logger.info(f"Recorded review {event.decision} by {event.reviewer_id} for submission {event.submission_id} (event ID: {event.id})")
    return event

async def list_review_events(db: AsyncIOMotorDatabase, submission_id: str) -> List[ReviewEventDB]:
    cursor = db[REVIEWS_COLLECTION].find({"submission_id": submission_id}).sort("created_at", 1)
    documents = await cursor.to_list(length=None)
    return [ReviewEventDB(**doc) for doc in documents]
