import datetime
import uuid
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ValidationStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_VALIDATION_STATUSES = (ValidationStatus.COMPLETED, ValidationStatus.FAILED)


class ValidationErrorType(str, Enum):
    TIMEOUT = "TIMEOUT"
    N8N_ERROR = "N8N_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"


class Recommendation(str, Enum):
    APPROVE = "APPROVE"
    REVIEW = "REVIEW"
    REJECT = "REJECT"


class FieldValidation(BaseModel):
    label: str
    is_valid: bool
    confidence: Optional[float] = None
    notes: Optional[str] = None


# Spellings the workflow has used besides the enum values
_RECOMMENDATION_ALIASES = {
    "APPROVED": Recommendation.APPROVE.value,
    "NEEDS_REVIEW": Recommendation.REVIEW.value,
    "REJECTED": Recommendation.REJECT.value,
}


def _as_float(value: Any) -> Optional[float]:
    """Best-effort numeric reading of a callback value; anything unreadable becomes None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _field_validations_from_ai_results(ai_results: Any) -> List[Dict[str, Any]]:
    # The workflow reports per-field results either keyed by field id or as a list
    items = ai_results.items() if isinstance(ai_results, dict) else enumerate(ai_results or [])
    derived = []
    for key, item in items:
        if not isinstance(item, dict):
            continue
        is_valid = item.get("is_valid", item.get("isValid", item.get("match")))
        derived.append({
            "label": str(item.get("label") or key),
            "is_valid": bool(is_valid),
            "confidence": _as_float(item.get("confidence")),
            "notes": item.get("notes"),
        })
    return derived


class ValidationRecordDB(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4().hex))
    submission_id: str
    status: ValidationStatus = ValidationStatus.PENDING

    overall_score: Optional[float] = None
    recommendation: Optional[Recommendation] = None
    field_validations: List[FieldValidation] = Field(default_factory=list)
    issues_found: List[str] = Field(default_factory=list)
    ai_results: Optional[Any] = None # Raw per-field output as written by the callback

    error_type: Optional[ValidationErrorType] = None
    error_message: Optional[str] = None

    retry_count: int = 0
    last_retry_at: Optional[datetime.datetime] = None
    processed_at: Optional[datetime.datetime] = None

    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    updated_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))

    @model_validator(mode="before")
    @classmethod
    def _derive_field_validations(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("field_validations") and data.get("ai_results"):
            data = dict(data)
            data["field_validations"] = _field_validations_from_ai_results(data["ai_results"])
        return data

    @field_validator("overall_score", mode="before")
    @classmethod
    def _coerce_score(cls, value: Any) -> Any:
        # The callback has historically written the score as a formatted string ("0.93").
        # An unreadable score is dropped; a completed record without one is rejected when read as a result.
        return _as_float(value)

    @field_validator("recommendation", mode="before")
    @classmethod
    def _normalize_recommendation(cls, value: Any) -> Any:
        if isinstance(value, Recommendation) or value is None:
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().upper()
        normalized = _RECOMMENDATION_ALIASES.get(normalized, normalized)
        # Unknown values are dropped so the recommendation is derived from the score
        return normalized if normalized in Recommendation.__members__ else None

    @field_validator("error_type", mode="before")
    @classmethod
    def _known_error_type(cls, value: Any) -> Any:
        if isinstance(value, ValidationErrorType) or not isinstance(value, str):
            return value
        return value if value in ValidationErrorType.__members__ else None

    @field_validator("issues_found", mode="before")
    @classmethod
    def _issues_as_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value
