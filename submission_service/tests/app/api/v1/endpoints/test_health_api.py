import pytest
from unittest.mock import AsyncMock, patch, MagicMock

from fastapi.testclient import TestClient
from submission_service.app.main import app
from submission_service.app.config import settings
from submission_service.infrastructure.database.connection import get_db


@pytest.fixture
def client():
    app.dependency_overrides = {}
    yield TestClient(app)
    app.dependency_overrides = {}


@pytest.fixture
def mock_db_session():
    db = MagicMock()
    db.command = AsyncMock() # ping
    return db


@patch("submission_service.app.config.settings.AI_VALIDATION_WEBHOOK_URL", "http://workflow.test/webhook")
def test_health_check_db_connected(client: TestClient, mock_db_session: MagicMock):
    mock_db_session.command.return_value = {"ok": 1}
    app.dependency_overrides[get_db] = lambda: mock_db_session

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "components": {"mongodb": "connected", "ai_validation": "configured"},
        "service_name": settings.SERVICE_NAME_API,
    }
    mock_db_session.command.assert_called_once_with('ping')


@patch("submission_service.app.config.settings.AI_VALIDATION_WEBHOOK_URL", None)
def test_health_check_db_disconnected(client: TestClient, mock_db_session: MagicMock):
    mock_db_session.command.side_effect = Exception("Connection failed")
    app.dependency_overrides[get_db] = lambda: mock_db_session

    response = client.get("/health")

    assert response.status_code == 200 # Component failures do not fail the endpoint
    assert response.json()["components"] == {"mongodb": "disconnected", "ai_validation": "not_configured"}
