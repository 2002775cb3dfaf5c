# FastAPI Application Entry Point
import logging
from fastapi import FastAPI
import httpx

# Configuration and Observability
from submission_service.app.config import settings
from submission_service.app.observability import setup_opentelemetry, logger

# Initialize OpenTelemetry
setup_opentelemetry(service_name=settings.SERVICE_NAME_API)

# Import instrumentors after OTel SDK is initialized
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.pymongo import PymongoInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

# Database connection
from submission_service.infrastructure.database.connection import connect_to_mongo, close_mongo_connection
# Attachment storage
from submission_service.infrastructure.storage.s3_attachment_storage import S3AttachmentStorage, get_s3_client

# API Routers
from submission_service.app.api.v1.endpoints import health as health_router
from submission_service.app.api.v1.endpoints import submissions as submissions_router

# --- FastAPI Application Instance ---
app = FastAPI(
    title="Submission Service",
    description="Form submission lifecycle, AI validation orchestration and submission cleanup.",
    version="0.1.0"
)

# --- Event Handlers for shared clients & OTel Instrumentation ---
@app.on_event("startup")
async def startup_event():
    logger.info("FastAPI application startup...")
    try:
        app.state.http_client = httpx.AsyncClient(timeout=settings.DEFAULT_HTTP_TIMEOUT)
        HTTPXClientInstrumentor().instrument()
        logger.info(f"HTTPX AsyncClient initialized with timeout {settings.DEFAULT_HTTP_TIMEOUT} and instrumented.")

        app.state.attachment_storage = S3AttachmentStorage(get_s3_client(), settings.STORAGE_PUBLIC_BASE_URL)
        logger.info(f"Attachment storage initialized (public base URL: {settings.STORAGE_PUBLIC_BASE_URL}).")

        await connect_to_mongo()
        logger.info("MongoDB connection established.")

        PymongoInstrumentor().instrument()
        logger.info("PyMongo instrumentation complete.")

        if not settings.AI_VALIDATION_WEBHOOK_URL:
            logger.warning("AI_VALIDATION_WEBHOOK_URL not set. Submissions cannot be sent for AI validation.")

    except Exception as e:
        logger.error(f"Failed during startup: {e}", exc_info=True)

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("FastAPI application shutdown...")

    if hasattr(app.state, 'http_client') and app.state.http_client:
        await app.state.http_client.aclose()
        logger.info("HTTPX AsyncClient closed.")

    close_mongo_connection()

FastAPIInstrumentor.instrument_app(app)
logger.info("FastAPI instrumentation complete.")

# Include API Routers
app.include_router(health_router.router)
app.include_router(submissions_router.router, prefix="/api/v1", tags=["Submissions"])

logger.info("API routers included. Application setup complete.")

# To run: uvicorn submission_service.app.main:app --reload --port 8000
