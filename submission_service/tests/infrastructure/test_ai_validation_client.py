import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from submission_service.app.models import AIValidationRequest
from submission_service.app.service.exceptions import (
    ConfigurationError,
    ValidationDispatchNetworkError,
    ValidationDispatchServiceError,
    ValidationDispatchTimeoutError,
)
from submission_service.infrastructure.ai_validation_client import AIValidationClient, VALIDATION_TOKEN_HEADER

WEBHOOK_URL = "http://workflow.test/webhook/validate"


@pytest.fixture
def payload():
    return AIValidationRequest(submission_id="sub-1", form_id="form-1", form_name="KYC")


@pytest.fixture
def mock_http_client():
    return AsyncMock(spec=httpx.AsyncClient)


def _response(status_code: int, text: str = "") -> MagicMock:
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.text = text
    return response


@pytest.mark.asyncio
async def test_send_validation_request_posts_payload_with_token(mock_http_client, payload):
    mock_http_client.post.return_value = _response(202)
    client = AIValidationClient(mock_http_client, WEBHOOK_URL, token="secret", timeout_seconds=300)

    await client.send_validation_request(payload)

    mock_http_client.post.assert_awaited_once()
    args, kwargs = mock_http_client.post.call_args
    assert args[0] == WEBHOOK_URL
    assert kwargs["headers"] == {VALIDATION_TOKEN_HEADER: "secret"}
    assert kwargs["json"]["submission_id"] == "sub-1"
    assert kwargs["json"]["files"] == []


@pytest.mark.asyncio
async def test_non_success_status_is_a_service_error(mock_http_client, payload):
    mock_http_client.post.return_value = _response(500, "workflow crashed")
    client = AIValidationClient(mock_http_client, WEBHOOK_URL)

    with pytest.raises(ValidationDispatchServiceError) as exc_info:
        await client.send_validation_request(payload)

    assert exc_info.value.status_code == 500
    assert exc_info.value.error_type == "N8N_ERROR"
    assert str(exc_info.value) == "AI validation service responded with error: 500"


@pytest.mark.asyncio
async def test_wall_clock_budget_is_enforced(mock_http_client, payload):
    async def never_answers(*args, **kwargs):
        await asyncio.sleep(10)

    mock_http_client.post.side_effect = never_answers
    client = AIValidationClient(mock_http_client, WEBHOOK_URL, timeout_seconds=0.05)

    with pytest.raises(ValidationDispatchTimeoutError) as exc_info:
        await client.send_validation_request(payload)

    assert exc_info.value.error_type == "TIMEOUT"


@pytest.mark.asyncio
async def test_httpx_timeout_is_classified_as_timeout(mock_http_client, payload):
    mock_http_client.post.side_effect = httpx.ReadTimeout("read timed out")
    client = AIValidationClient(mock_http_client, WEBHOOK_URL)

    with pytest.raises(ValidationDispatchTimeoutError):
        await client.send_validation_request(payload)


@pytest.mark.asyncio
async def test_transport_error_is_a_network_error(mock_http_client, payload):
    mock_http_client.post.side_effect = httpx.ConnectError("connection refused")
    client = AIValidationClient(mock_http_client, WEBHOOK_URL)

    with pytest.raises(ValidationDispatchNetworkError) as exc_info:
        await client.send_validation_request(payload)

    assert exc_info.value.error_type == "NETWORK_ERROR"


@pytest.mark.asyncio
async def test_missing_webhook_url(mock_http_client, payload):
    client = AIValidationClient(mock_http_client, None)

    assert client.is_configured is False
    with pytest.raises(ConfigurationError):
        await client.send_validation_request(payload)
    mock_http_client.post.assert_not_called()
