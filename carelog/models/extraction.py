"""Data models passed between extraction, shaping and persistence."""

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID


@dataclass
class CareEventRow:
    """A shaped care event ready to be written.

    Attributes:
        source_doc_id: Owning source document
        resident_name: Roster display name, or the raw name when unmatched
        event_date: Calendar date the sheet covers
        hour: Column hour, 0..23
        category: urination, defecation or fluid
        count: Positive mark count
        guided: Caregiver-assisted flag
        incontinence: Accident flag
        value: Free-text note
        confidence: Extraction confidence in [0, 1]
        needs_review: Low confidence or unmatched name
    """

    source_doc_id: UUID
    resident_name: str
    event_date: date
    hour: int
    category: str
    count: int = 1
    guided: bool = False
    incontinence: bool = False
    value: Optional[str] = None
    confidence: Optional[float] = None
    needs_review: bool = False

    @property
    def key(self) -> Tuple[UUID, str, date, int, str]:
        """Natural key; at most one stored row per key."""
        return (self.source_doc_id, self.resident_name, self.event_date, self.hour, self.category)

    def as_record(self) -> Dict[str, Any]:
        return asdict(self)


SOURCE_MODEL = "model"
SOURCE_GEOMETRY = "geometry"


@dataclass
class SheetExtraction:
    """Output of one extraction strategy.

    Attributes:
        source: ``model`` or ``geometry``
        payload: ``{"sheet": {...}, "events": [...]}``
        strategy: How the payload was recovered from the model output
        valid: Whether the payload passed schema validation
        diagnostics: Strategy-specific details for the audit trail
    """

    source: str
    payload: Dict[str, Any] = field(default_factory=dict)
    strategy: str = ""
    valid: bool = False
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @property
    def events(self) -> List[Any]:
        events = self.payload.get("events") if isinstance(self.payload, dict) else None
        return events if isinstance(events, list) else []

    @property
    def sheet_date(self) -> Optional[str]:
        sheet = self.payload.get("sheet") if isinstance(self.payload, dict) else None
        value = sheet.get("date_iso") if isinstance(sheet, dict) else None
        return value if isinstance(value, str) else None
