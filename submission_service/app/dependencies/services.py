# FastAPI dependency providers wiring the service components per request
from fastapi import Depends, Request
import httpx
from motor.motor_asyncio import AsyncIOMotorDatabase

from submission_service.app.config import settings
from submission_service.app.dependencies.http_client import get_http_client
from submission_service.app.service.attachments.attachment_service import AttachmentService
from submission_service.app.service.cleanup.deletion import SubmissionDeletionService
from submission_service.app.service.cleanup.protocol import SubmissionCleanupProtocol
from submission_service.app.service.interfaces.attachment_storage import AbstractAttachmentStorage
from submission_service.app.service.lifecycle.controller import SubmissionLifecycleController
from submission_service.app.service.validation.dispatcher import ValidationDispatcher
from submission_service.app.service.validation.poller import ValidationCompletionPoller
from submission_service.infrastructure.ai_validation_client import AIValidationClient
from submission_service.infrastructure.database.connection import get_db
from submission_service.infrastructure.deletion_rpc_client import DeletionProcedureClient


async def get_attachment_storage(request: Request) -> AbstractAttachmentStorage:
    """The storage backend created at startup (`request.app.state.attachment_storage`)."""
    return request.app.state.attachment_storage


def get_attachment_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    storage: AbstractAttachmentStorage = Depends(get_attachment_storage),
) -> AttachmentService:
    return AttachmentService(db, storage, settings.DEFAULT_STORAGE_AREA)


def get_validation_dispatcher(
    db: AsyncIOMotorDatabase = Depends(get_db),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    storage: AbstractAttachmentStorage = Depends(get_attachment_storage),
) -> ValidationDispatcher:
    ai_client = AIValidationClient(
        http_client,
        settings.AI_VALIDATION_WEBHOOK_URL,
        settings.AI_VALIDATION_WEBHOOK_TOKEN,
        settings.AI_VALIDATION_TIMEOUT_SECONDS,
    )
    return ValidationDispatcher(
        db,
        ai_client,
        storage,
        callback_url=settings.AI_VALIDATION_CALLBACK_URL,
        default_area=settings.DEFAULT_STORAGE_AREA,
    )


def get_lifecycle_controller(
    db: AsyncIOMotorDatabase = Depends(get_db),
    dispatcher: ValidationDispatcher = Depends(get_validation_dispatcher),
    attachment_service: AttachmentService = Depends(get_attachment_service),
) -> SubmissionLifecycleController:
    return SubmissionLifecycleController(
        db,
        dispatcher,
        attachment_service,
        allow_submit_without_ai=settings.ALLOW_SUBMIT_WITHOUT_AI,
    )


def get_completion_poller(
    db: AsyncIOMotorDatabase = Depends(get_db),
    controller: SubmissionLifecycleController = Depends(get_lifecycle_controller),
) -> ValidationCompletionPoller:
    return ValidationCompletionPoller(
        db,
        controller,
        interval_seconds=settings.VALIDATION_POLL_INTERVAL_SECONDS,
        max_attempts=settings.VALIDATION_POLL_MAX_ATTEMPTS,
    )


def get_deletion_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    storage: AbstractAttachmentStorage = Depends(get_attachment_storage),
) -> SubmissionDeletionService:
    protocol = SubmissionCleanupProtocol(
        db,
        storage,
        known_areas=settings.KNOWN_STORAGE_AREAS,
        default_area=settings.DEFAULT_STORAGE_AREA,
        public_base_url=settings.STORAGE_PUBLIC_BASE_URL,
    )
    rpc_client = None
    if settings.DELETE_SUBMISSION_RPC_URL:
        rpc_client = DeletionProcedureClient(http_client, settings.DELETE_SUBMISSION_RPC_URL, settings.DELETE_SUBMISSION_RPC_TOKEN)
    return SubmissionDeletionService(protocol, rpc_client)
