import datetime
import uuid
from enum import Enum
from typing import Optional, Dict, Any, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SubmissionStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_AI_VALIDATION = "PENDING_AI_VALIDATION"
    AI_VALIDATED = "AI_VALIDATED"
    AI_VALIDATION_FAILED = "AI_VALIDATION_FAILED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# Keys under which older clients stored a file's public URL
_LEGACY_URL_KEYS = ("url", "publicUrl", "publicURL", "signedUrl")


class AttachmentRef(BaseModel):
    """Reference to an uploaded file, stored in a submission's `files` mapping."""
    name: Optional[str] = None
    url: Optional[str] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None
    storage_area: Optional[str] = None
    storage_path: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy_shape(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"url": data or None}
        if not isinstance(data, dict):
            return data
        normalized = dict(data)
        if not normalized.get("url"):
            nested = normalized.get("data") if isinstance(normalized.get("data"), dict) else {}
            for source in (normalized, nested):
                found = next((source[key] for key in _LEGACY_URL_KEYS if source.get(key)), None)
                if found:
                    normalized["url"] = found
                    break
        if not normalized.get("mime_type") and normalized.get("type"):
            normalized["mime_type"] = normalized["type"]
        return normalized


class SubmissionDB(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4().hex))
    form_id: str
    target_id: str # Person or company the form is about
    submitted_by: str

    values: Dict[str, Union[bool, str, None]] = Field(default_factory=dict)
    raw_values: Optional[Dict[str, Any]] = None # Pre-normalization copy, as typed by the submitter
    files: Dict[str, AttachmentRef] = Field(default_factory=dict)

    status: SubmissionStatus = SubmissionStatus.DRAFT
    ai_validation_id: Optional[str] = None # Most recent validation record

    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    updated_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    submitted_at: Optional[datetime.datetime] = None
