# S3-compatible implementation of the attachment storage, one bucket per storage area
import asyncio
import logging
from typing import Optional

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from submission_service.app.config import settings
from submission_service.app.service.exceptions import AttachmentStorageError
from submission_service.app.service.interfaces.attachment_storage import AbstractAttachmentStorage

logger = logging.getLogger(__name__)

_NOT_FOUND_ERROR_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}


def get_s3_client(endpoint_url: Optional[str] = None, region: Optional[str] = None) -> BaseClient:
    """Return a configured S3 client (supports S3-compatible endpoints such as MinIO)."""
    endpoint = (endpoint_url or settings.S3_ENDPOINT_URL or "").rstrip("/") or None
    return boto3.client(
        "s3",
        region_name=region or settings.S3_REGION or None,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        endpoint_url=endpoint,
    )


class S3AttachmentStorage(AbstractAttachmentStorage):
    def __init__(self, s3_client: BaseClient, public_base_url: str):
        self.s3_client = s3_client
        self.public_base_url = public_base_url.rstrip("/")

    async def upload(self, area: str, path: str, content: bytes, content_type: Optional[str] = None) -> None:
        extra = {"ContentType": content_type} if content_type else {}
        try:
            # boto3 is blocking; keep the event loop free while the object is written
            await asyncio.to_thread(self.s3_client.put_object, Bucket=area, Key=path, Body=content, **extra)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload object {area}/{path}: {e}", exc_info=True)
            raise AttachmentStorageError(f"Failed to upload '{path}' to storage area '{area}': {e}") from e
        logger.info(f"Uploaded object {area}/{path} ({len(content)} bytes).")

    async def delete(self, area: str, path: str) -> bool:
        try:
            await asyncio.to_thread(self.s3_client.delete_object, Bucket=area, Key=path)
        except ClientError as e:
            error_code = str(e.response.get("Error", {}).get("Code", ""))
            if error_code in _NOT_FOUND_ERROR_CODES:
                logger.info(f"Object {area}/{path} not found in storage; nothing to delete.")
                return False
            logger.error(f"Failed to delete object {area}/{path}: {e}", exc_info=True)
            raise AttachmentStorageError(f"Failed to delete '{path}' from storage area '{area}': {e}") from e
        except BotoCoreError as e:
            logger.error(f"Storage unreachable while deleting {area}/{path}: {e}", exc_info=True)
            raise AttachmentStorageError(f"Failed to delete '{path}' from storage area '{area}': {e}") from e
        logger.info(f"Deleted object {area}/{path}.")
        return True

    def public_url(self, area: str, path: str) -> str:
        return f"{self.public_base_url}/{area}/{path.lstrip('/')}"
