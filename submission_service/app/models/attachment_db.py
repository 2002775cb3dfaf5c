import datetime
import uuid
from typing import Optional

from pydantic import BaseModel, Field


class AttachmentDB(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4().hex))
    submission_id: str
    field_id: str # Each submission+field pair owns at most one attachment

    storage_area: Optional[str] = None # Named bucket; legacy rows may only carry a full storage_path
    storage_path: Optional[str] = None # Relative path inside the storage area
    file_name: Optional[str] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None
    uploaded_by: Optional[str] = None

    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
