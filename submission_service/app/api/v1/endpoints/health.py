# API Router for Health Checks
from fastapi import APIRouter, Depends
import logging

from submission_service.infrastructure.database.connection import get_db
from submission_service.app.config import settings
from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/health", tags=["Monitoring"])
async def health_check(db: AsyncIOMotorDatabase = Depends(get_db)):
    mongodb_status = "connected"
    try:
        await db.command('ping')
    except Exception as e:
        logger.error(f"MongoDB health check ping failed: {e}")
        mongodb_status = "disconnected"
    ai_validation_status = "configured" if settings.AI_VALIDATION_WEBHOOK_URL else "not_configured"
    return {
        "status": "ok",
        "components": {"mongodb": mongodb_status, "ai_validation": ai_validation_status},
        "service_name": settings.SERVICE_NAME_API,
    }
