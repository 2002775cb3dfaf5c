# Shared test doubles and form identifiers
from typing import Dict, Optional, Set, Tuple

from submission_service.app.service.exceptions import AttachmentStorageError
from submission_service.app.service.interfaces.attachment_storage import AbstractAttachmentStorage

PUBLIC_BASE_URL = "http://storage.test"
DEFAULT_AREA = "form-attachments"
KNOWN_AREAS = ["form-attachments", "public", "documents"]

FORM_ID = "form-kyc"
FIELD_NAME = "f-name"
FIELD_AGREE = "f-agree"
FIELD_NOTES = "f-notes"
FIELD_ID_DOC = "f-id-doc"


class InMemoryAttachmentStorage(AbstractAttachmentStorage):
    """Attachment storage kept in a dict; paths listed in `failing` raise on delete."""

    def __init__(self, public_base_url: str = PUBLIC_BASE_URL):
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.failing: Set[Tuple[str, str]] = set()
        self.public_base_url = public_base_url

    async def upload(self, area: str, path: str, content: bytes, content_type: Optional[str] = None) -> None:
        self.objects[(area, path)] = content

    async def delete(self, area: str, path: str) -> bool:
        if (area, path) in self.failing:
            raise AttachmentStorageError(f"simulated failure deleting {area}/{path}")
        return self.objects.pop((area, path), None) is not None

    def public_url(self, area: str, path: str) -> str:
        return f"{self.public_base_url}/{area}/{path}"
