import datetime
from typing import Optional, List, Any

from pydantic import BaseModel, Field

FILE_FIELD_TYPE = "file"


class FormDB(BaseModel): # Read-only here; forms are managed by the form builder
    id: str
    form_name: str = "Untitled form"
    description: Optional[str] = None


class FormFieldDB(BaseModel):
    id: str
    form_id: str
    label: str
    type: str # e.g. "text", "date", "checkbox", "select", "file"
    required: bool = False
    field_order: int = 0
    options: Optional[List[Any]] = None
    ai_validation_prompt: Optional[str] = None
    placeholder_text: Optional[str] = None
    created_at: Optional[datetime.datetime] = None

    @property
    def is_file(self) -> bool:
        return self.type == FILE_FIELD_TYPE
