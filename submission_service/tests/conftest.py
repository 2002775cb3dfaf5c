import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from mongomock_motor import AsyncMongoMockClient

from submission_service.app.models import FormDB, FormFieldDB
from submission_service.app.service.attachments.attachment_service import AttachmentService
from submission_service.app.service.lifecycle.controller import SubmissionLifecycleController
from submission_service.app.service.validation.dispatcher import ValidationDispatcher
from submission_service.tests.fakes import (
    DEFAULT_AREA,
    FIELD_AGREE,
    FIELD_ID_DOC,
    FIELD_NAME,
    FIELD_NOTES,
    FORM_ID,
    InMemoryAttachmentStorage,
)


@pytest.fixture
def db():
    client = AsyncMongoMockClient()
    return client["submission_service_test_db"]


@pytest.fixture
def storage():
    return InMemoryAttachmentStorage()


@pytest.fixture
def ai_client():
    client = MagicMock()
    client.is_configured = True
    client.send_validation_request = AsyncMock(return_value=None)
    return client


@pytest.fixture
def dispatcher(db, ai_client, storage):
    return ValidationDispatcher(db, ai_client, storage, callback_url="http://callback.test/ai", default_area=DEFAULT_AREA)


@pytest.fixture
def attachment_service(db, storage):
    return AttachmentService(db, storage, DEFAULT_AREA)


@pytest.fixture
def controller(db, dispatcher, attachment_service):
    return SubmissionLifecycleController(db, dispatcher, attachment_service, allow_submit_without_ai=True)


@pytest_asyncio.fixture
async def kyc_form(db):
    """A form with a required text field, a required checkbox, an optional note and a required file."""
    await db["forms"].insert_one(FormDB(id=FORM_ID, form_name="KYC Individual").model_dump())
    fields = [
        FormFieldDB(id=FIELD_NAME, form_id=FORM_ID, label="Full name", type="text", required=True, field_order=1),
        FormFieldDB(id=FIELD_AGREE, form_id=FORM_ID, label="Accept terms", type="checkbox", required=True, field_order=2),
        FormFieldDB(id=FIELD_NOTES, form_id=FORM_ID, label="Notes", type="text", required=False, field_order=3,
                    ai_validation_prompt="Check the notes are polite"),
        FormFieldDB(id=FIELD_ID_DOC, form_id=FORM_ID, label="ID document", type="file", required=True, field_order=4),
    ]
    await db["form_fields"].insert_many([f.model_dump() for f in fields])
    return FORM_ID


@pytest.fixture
def complete_values():
    return {FIELD_NAME: "Ada Lovelace", FIELD_AGREE: True, FIELD_NOTES: "hello"}
