from typing import Optional, List, Union

from pydantic import BaseModel, Field


class PayloadField(BaseModel):
    field_id: str
    label: str
    type: str
    value: Union[bool, str, None] = None
    ai_prompt: str


class PayloadFile(BaseModel):
    field_id: str
    label: str
    url: Optional[str] = None # Sent as null when no URL can be resolved, never dropped
    mime_type: Optional[str] = None
    type: str # "image" or "document"
    ai_prompt: str


class AIValidationRequest(BaseModel):
    """Body sent to the external AI validation workflow."""
    submission_id: str
    form_id: str
    form_name: str
    callback_url: Optional[str] = None
    fields: List[PayloadField] = Field(default_factory=list)
    files: List[PayloadFile] = Field(default_factory=list)
