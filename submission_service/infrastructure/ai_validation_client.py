# Client for the external AI validation workflow (webhook)
import asyncio
import logging
from typing import Optional

import httpx

from submission_service.app.models import AIValidationRequest
from submission_service.app.service.exceptions import (
    ConfigurationError,
    ValidationDispatchNetworkError,
    ValidationDispatchServiceError,
    ValidationDispatchTimeoutError,
)

logger = logging.getLogger(__name__)

VALIDATION_TOKEN_HEADER = "X-Validation-Token"


class AIValidationClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        webhook_url: Optional[str],
        token: Optional[str] = None,
        timeout_seconds: float = 300.0,
    ):
        self.http_client = http_client
        self.webhook_url = webhook_url
        self.token = token
        self.timeout_seconds = timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    async def send_validation_request(self, payload: AIValidationRequest) -> None:
        """
        Posts the payload to the workflow webhook. Any 2xx answer means the work was accepted;
        the result arrives later through the callback.

        Raises:
            ConfigurationError: no webhook URL configured.
            ValidationDispatchTimeoutError: the call exceeded `timeout_seconds`.
            ValidationDispatchServiceError: the workflow answered with a non-2xx status.
            ValidationDispatchNetworkError: any other transport failure.
        """
        if not self.webhook_url:
            raise ConfigurationError("AI_VALIDATION_WEBHOOK_URL is not configured.")

        headers = {VALIDATION_TOKEN_HEADER: self.token} if self.token else {}
        logger.debug(f"Dispatching AI validation for submission {payload.submission_id} to {self.webhook_url}")

        try:
            # wait_for cancels the in-flight request on expiry, which releases its connection
            response = await asyncio.wait_for(
                self.http_client.post(
                    self.webhook_url,
                    json=payload.model_dump(),
                    headers=headers,
                    timeout=self.timeout_seconds,
                ),
                timeout=self.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning(f"AI validation call for submission {payload.submission_id} timed out after {self.timeout_seconds}s.")
            raise ValidationDispatchTimeoutError(
                f"AI validation service did not answer within {self.timeout_seconds:g} seconds"
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Request error calling AI validation service: {e}", exc_info=True)
            raise ValidationDispatchNetworkError(f"Could not reach AI validation service: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error(f"AI validation service rejected submission {payload.submission_id}: {response.status_code} - {response.text}")
            raise ValidationDispatchServiceError(response.status_code, response.text)

        logger.info(f"AI validation accepted for submission {payload.submission_id} (status {response.status_code}).")
