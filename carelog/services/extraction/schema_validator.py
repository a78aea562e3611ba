"""Validation of recovered payloads against the CareSheet shape."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Sent to the extraction service as the json_schema response format
CARE_SHEET_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "sheet": {
            "type": "object",
            "properties": {
                "date_iso": {"type": "string"},
                "title": {"type": ["string", "null"]},
                "facility": {"type": ["string", "null"]},
            },
            "required": ["date_iso"],
        },
        "events": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "resident_name": {"type": "string"},
                    "category": {"type": "string"},
                    "hour": {"type": "integer", "minimum": 0, "maximum": 23},
                    "count": {"type": "integer", "minimum": 1, "default": 1},
                    "guided": {"type": "boolean", "default": False},
                    "incontinence": {"type": "boolean", "default": False},
                    "note": {"type": ["string", "null"]},
                    "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                },
                "required": ["resident_name", "category", "hour", "count"],
            },
        },
    },
    "required": ["sheet", "events"],
}

CARE_SHEET_SCHEMA_NAME = "CareSheet"


class SheetHeader(BaseModel):
    """Sheet-level fields."""

    model_config = ConfigDict(strict=True, extra="allow")

    date_iso: str
    title: Optional[str] = None
    facility: Optional[str] = None


class SheetEvent(BaseModel):
    """One non-empty grid cell as reported by the model."""

    model_config = ConfigDict(strict=True, extra="allow")

    resident_name: str
    category: str
    hour: int = Field(ge=0, le=23)
    count: int = Field(ge=1)
    guided: bool = False
    incontinence: bool = False
    note: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0, le=1)


class CareSheetPayload(BaseModel):
    """Full payload returned by the extraction service."""

    model_config = ConfigDict(strict=True, extra="allow")

    sheet: SheetHeader
    events: List[SheetEvent]


def validate_payload(payload: Any) -> bool:
    """Return True when ``payload`` matches the CareSheet shape."""
    if not isinstance(payload, dict) or not payload:
        return False
    try:
        CareSheetPayload.model_validate(payload)
    except PydanticValidationError as e:
        LOGGER.info(
            "Payload failed schema validation",
            extra={"error_count": e.error_count(), "first_error": e.errors()[0].get("msg")},
        )
        return False
    return True


def needs_retry(payload: Any) -> bool:
    """Invalid payloads, and valid ones with no events, get one more attempt."""
    if not validate_payload(payload):
        return True
    return not payload.get("events")
