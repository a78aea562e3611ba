"""Extraction orchestrator for one uploaded sheet (image or PDF page)."""

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from carelog.core.exceptions import ValidationError
from carelog.models.extraction import CareEventRow, SheetExtraction
from carelog.repositories.resident_repository import ResidentRepository
from carelog.repositories.source_doc_repository import SourceDocRepository
from carelog.services.base_service import BaseService
from carelog.services.extraction.date_inference import (
    infer_date_from_path,
    resolve_sheet_date,
    today_iso,
)
from carelog.services.extraction.model_extractor import VisionSheetExtractor
from carelog.services.extraction.name_matcher import DEFAULT_MATCH_THRESHOLD
from carelog.services.extraction.row_shaping import (
    DEFAULT_REVIEW_THRESHOLD,
    build_patients_view,
    resolve_names,
    shape_rows,
)
from carelog.services.persistence_policy import CareEventWriter
from carelog.services.storage_service import StorageService, is_pdf
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

AUDIT_PROVIDER = "gpt"
INGEST_DEFAULT_CONFIDENCE = 0.75


@dataclass
class IngestionResult:
    """Aggregate counts of one ingestion.

    Attributes:
        source_doc_id: Document the rows belong to
        inserted: Rows actually written
        events: Events extracted by the model
        normalized: Events after name resolution
        rows: Rows that survived shaping
    """

    source_doc_id: UUID
    inserted: int
    events: int
    normalized: int
    rows: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class IngestionService(BaseService):
    """Run the model extraction pipeline for one stored file.

    Steps: ensure a SourceDoc, resolve and probe the file URL, infer a date
    hint, call the extraction model (with its relaxed retry), resolve names,
    shape rows, write them with the requested policy and record an audit
    trail on the SourceDoc.
    """

    def __init__(
        self,
        session: AsyncSession,
        storage: StorageService,
        extractor: VisionSheetExtractor,
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
        review_threshold: float = DEFAULT_REVIEW_THRESHOLD,
        default_confidence: float = INGEST_DEFAULT_CONFIDENCE,
    ):
        super().__init__(session)
        self.storage = storage
        self.extractor = extractor
        self.match_threshold = match_threshold
        self.review_threshold = review_threshold
        self.default_confidence = default_confidence

        self.docs = SourceDocRepository(session)
        self.residents = ResidentRepository(session)
        self.writer = CareEventWriter(session)

    def validate(self, storage_path: str, *args, **kwargs):
        if not storage_path or not storage_path.strip():
            raise ValidationError("storagePath required")

    async def run(
        self,
        storage_path: str,
        source_doc_id: Optional[UUID] = None,
        model: Optional[str] = None,
        append: bool = False,
    ) -> IngestionResult:
        doc_id = await self._ensure_source_doc(storage_path, source_doc_id)

        audit: Dict[str, Any] = {"provider": AUDIT_PROVIDER, "parsed": {}, "raw": {}}
        try:
            result = await self._ingest(doc_id, storage_path, model, append, audit)
        except Exception as e:
            audit["raw"]["error"] = str(e)
            await self._record_audit(doc_id, audit)
            raise

        await self._record_audit(doc_id, audit)
        return result

    async def _ensure_source_doc(self, storage_path: str, source_doc_id: Optional[UUID]) -> UUID:
        if source_doc_id is not None:
            doc = await self.docs.get_required(source_doc_id)
            return doc.id

        doc = await self.docs.create_source_doc(storage_path)
        doc_id = doc.id
        await self.session.commit()
        return doc_id

    async def _ingest(
        self,
        doc_id: UUID,
        storage_path: str,
        model: Optional[str],
        append: bool,
        audit: Dict[str, Any],
    ) -> IngestionResult:
        image_url = self.storage.public_url(storage_path)
        head_status = await self.storage.probe(image_url)
        audit["raw"].update({"image_url": image_url, "image_head_status": head_status})

        sheet_hint_iso = infer_date_from_path(storage_path) or today_iso()

        roster = await self.residents.load_roster()
        roster_names = [entry.display_name for entry in roster]

        extraction = await self._extract(storage_path, image_url, sheet_hint_iso, roster_names, model)
        audit["parsed"] = extraction.payload
        audit["raw"] = {**extraction.diagnostics, **audit["raw"]}

        events = extraction.events
        normalized = resolve_names(events, roster, self.match_threshold, keep_unmatched=True)

        date_iso = resolve_sheet_date(extraction.sheet_date, sheet_hint_iso)
        rows: List[CareEventRow] = shape_rows(
            normalized,
            source_doc_id=doc_id,
            event_date=date.fromisoformat(date_iso),
            default_confidence=self.default_confidence,
            review_threshold=self.review_threshold,
        )

        audit["raw"].update({
            "events_count": len(events),
            "normalized_count": len(normalized),
            "rows_count": len(rows),
        })
        audit["parsed_alt"] = build_patients_view(rows, date_iso)

        inserted = await self.writer.write(doc_id, rows, append=append)

        LOGGER.info(
            "Ingestion completed",
            extra={
                "source_doc_id": str(doc_id),
                "append": append,
                "events": len(events),
                "normalized": len(normalized),
                "rows": len(rows),
                "inserted": inserted,
            },
        )
        return IngestionResult(
            source_doc_id=doc_id,
            inserted=inserted,
            events=len(events),
            normalized=len(normalized),
            rows=len(rows),
        )

    async def _extract(
        self,
        storage_path: str,
        image_url: str,
        sheet_hint_iso: str,
        roster_names: List[str],
        model: Optional[str],
    ) -> SheetExtraction:
        if is_pdf(storage_path):
            content = await self.storage.download(storage_path)
            filename = storage_path.rsplit("/", 1)[-1]
            return await self.extractor.extract_from_document(
                content, filename, sheet_hint_iso, roster_names, model=model
            )
        return await self.extractor.extract_from_image(
            image_url, sheet_hint_iso, roster_names, model=model
        )

    async def _record_audit(self, doc_id: UUID, audit: Dict[str, Any]) -> None:
        """Best effort: the rows are already committed when this runs."""
        try:
            await self.docs.update_ocr_json(doc_id, audit)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            LOGGER.error(
                "Failed to record extraction audit trail",
                exc_info=True,
                extra={"source_doc_id": str(doc_id)},
            )
