import datetime
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ReviewDecision(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ReviewEventDB(BaseModel): # Append-only audit record of a human decision
    model_config = ConfigDict(use_enum_values=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4().hex))
    submission_id: str
    reviewer_id: str
    decision: ReviewDecision
    comment: Optional[str] = None
    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
