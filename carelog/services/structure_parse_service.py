"""Second step of the OCR flow: turn stored Vision output into care events."""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from carelog.models.extraction import SheetExtraction
from carelog.repositories.resident_repository import ResidentRepository
from carelog.repositories.source_doc_repository import SourceDocRepository
from carelog.services.base_service import BaseService
from carelog.services.extraction.date_inference import (
    extract_ja_date,
    extract_plain_text,
    infer_date_from_path,
    resolve_sheet_date,
    to_date_iso,
)
from carelog.services.extraction.geometry_fallback import (
    DEFAULT_EVENT_CAP,
    DEFAULT_MIN_HOUR_COLUMNS,
    GeometryExtractor,
)
from carelog.services.extraction.model_extractor import VisionSheetExtractor
from carelog.services.extraction.name_matcher import DEFAULT_MATCH_THRESHOLD
from carelog.services.extraction.row_shaping import (
    DEFAULT_REVIEW_THRESHOLD,
    resolve_names,
    shape_rows,
)
from carelog.services.persistence_policy import CareEventWriter
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

STRUCTURE_DEFAULT_CONFIDENCE = 0.7
NO_ROWS_HINT = "no rows after roster-filter"


@dataclass
class StructureParseResult:
    inserted: int
    source: str
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"inserted": self.inserted}
        if self.hint:
            data["hint"] = self.hint
        return data


class StructureParseService(BaseService):
    """Parse a SourceDoc's stored OCR response into care events.

    The model reads the OCR text twice at most; when both attempts return no
    events the geometry fallback rebuilds the grid from token coordinates.
    Names that do not resolve against the roster are dropped on both paths.
    """

    def __init__(
        self,
        session: AsyncSession,
        extractor: VisionSheetExtractor,
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
        review_threshold: float = DEFAULT_REVIEW_THRESHOLD,
        geometry_event_cap: int = DEFAULT_EVENT_CAP,
        geometry_min_hour_columns: int = DEFAULT_MIN_HOUR_COLUMNS,
        default_confidence: float = STRUCTURE_DEFAULT_CONFIDENCE,
    ):
        super().__init__(session)
        self.extractor = extractor
        self.match_threshold = match_threshold
        self.review_threshold = review_threshold
        self.geometry_event_cap = geometry_event_cap
        self.geometry_min_hour_columns = geometry_min_hour_columns
        self.default_confidence = default_confidence

        self.docs = SourceDocRepository(session)
        self.residents = ResidentRepository(session)
        self.writer = CareEventWriter(session)

    async def run(self, source_doc_id: UUID) -> StructureParseResult:
        roster = await self.residents.load_roster()
        doc = await self.docs.get_required(source_doc_id)
        doc_id = doc.id
        ocr_json = doc.ocr_json or {}

        text = extract_plain_text(ocr_json)
        sheet_hint_iso = (
            extract_ja_date(text)
            or infer_date_from_path(doc.storage_path)
            or to_date_iso(doc.created_at)
        )

        roster_names = [entry.display_name for entry in roster]
        extraction = await self.extractor.extract_from_ocr_text(
            text, ocr_json, sheet_hint_iso, roster_names
        )
        if not extraction.events:
            LOGGER.info("No events from first OCR-text attempt, insisting", extra={"source_doc_id": str(doc_id)})
            extraction = await self.extractor.extract_from_ocr_text(
                text, ocr_json, sheet_hint_iso, roster_names, insist=True
            )
        if not extraction.events:
            extraction = self._geometry(roster, ocr_json, sheet_hint_iso)

        matched = resolve_names(extraction.events, roster, self.match_threshold, keep_unmatched=False)
        date_iso = resolve_sheet_date(extraction.sheet_date, sheet_hint_iso)
        rows = shape_rows(
            matched,
            source_doc_id=doc_id,
            event_date=date.fromisoformat(date_iso),
            default_confidence=self.default_confidence,
            review_threshold=self.review_threshold,
        )

        if not rows:
            LOGGER.info(
                "No rows after roster filter",
                extra={"source_doc_id": str(doc_id), "source": extraction.source},
            )
            return StructureParseResult(inserted=0, source=extraction.source, hint=NO_ROWS_HINT)

        inserted = await self.writer.replace_for_source_doc(doc_id, rows)
        LOGGER.info(
            "Structure parse completed",
            extra={
                "source_doc_id": str(doc_id),
                "source": extraction.source,
                "events": len(extraction.events),
                "inserted": inserted,
            },
        )
        return StructureParseResult(inserted=inserted, source=extraction.source)

    def _geometry(self, roster, ocr_json: Any, sheet_hint_iso: str) -> SheetExtraction:
        extractor = GeometryExtractor(
            roster,
            match_threshold=self.match_threshold,
            event_cap=self.geometry_event_cap,
            min_hour_columns=self.geometry_min_hour_columns,
        )
        return extractor.extract(ocr_json, sheet_hint_iso)
