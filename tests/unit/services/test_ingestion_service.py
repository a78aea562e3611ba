"""Tests for the model-based ingestion orchestrator."""

import uuid
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from carelog.core.exceptions import APIClientError, NotFoundError, ValidationError
from carelog.models.extraction import SOURCE_MODEL, SheetExtraction
from carelog.repositories.care_event_repository import CareEventRepository
from carelog.repositories.source_doc_repository import SourceDocRepository
from carelog.services.ingestion_service import IngestionService

STORAGE_PATH = "sheets/2025/20250925_floor2.jpg"
PUBLIC_URL = f"https://proj.supabase.co/storage/v1/object/public/{STORAGE_PATH}"


def _extraction(events, date_iso="2025-09-24"):
    return SheetExtraction(
        source=SOURCE_MODEL,
        payload={"sheet": {"date_iso": date_iso}, "events": events},
        strategy="direct",
        valid=True,
        diagnostics={"parse_strategy": "direct", "validation": True, "fallback": None},
    )


EVENTS = [
    {"resident_name": "山田 太郎", "category": "urination", "hour": 8, "count": 2, "guided": True, "confidence": 0.9},
    {"resident_name": "高橋", "category": "fluid", "hour": 9, "count": 1, "confidence": 0.95},
    {"resident_name": "佐藤花子", "category": "note", "hour": 10, "count": 1},
    {"resident_name": "佐藤花子", "category": "defecation", "hour": 24, "count": 1},
]


@pytest.fixture
def storage():
    storage = MagicMock()
    storage.public_url.return_value = PUBLIC_URL
    storage.probe = AsyncMock(return_value=200)
    storage.download = AsyncMock(return_value=b"%PDF-1.4")
    return storage


@pytest.fixture
def extractor():
    extractor = MagicMock()
    extractor.extract_from_image = AsyncMock(return_value=_extraction(EVENTS))
    extractor.extract_from_document = AsyncMock(return_value=_extraction(EVENTS))
    return extractor


@pytest.fixture
def service(db_session, storage, extractor, seeded_residents):
    return IngestionService(session=db_session, storage=storage, extractor=extractor)


class TestIngestionService:

    @pytest.mark.asyncio
    async def test_image_ingestion_counts_and_rows(self, db_session, service, extractor):
        result = await service.execute(storage_path=STORAGE_PATH)

        assert (result.inserted, result.events, result.normalized, result.rows) == (2, 4, 4, 2)

        rows = await CareEventRepository(db_session).list_by_source_doc(result.source_doc_id)
        by_name = {r.resident_name: r for r in rows}
        assert set(by_name) == {"山田太郎", "高橋"}
        assert by_name["山田太郎"].count == 2
        assert by_name["山田太郎"].guided is True
        assert by_name["山田太郎"].needs_review is False
        # unmatched names are kept but flagged
        assert by_name["高橋"].needs_review is True
        # the sheet's own date beats the file name
        assert all(r.event_date == date(2025, 9, 24) for r in rows)

        image_url, hint, roster_names = extractor.extract_from_image.await_args.args
        assert image_url == PUBLIC_URL
        assert hint == "2025-09-25"
        assert set(roster_names) == {"山田太郎", "佐藤花子", "鈴木一郎"}

    @pytest.mark.asyncio
    async def test_audit_trail_is_recorded(self, db_session, service):
        result = await service.execute(storage_path=STORAGE_PATH)

        doc = await SourceDocRepository(db_session).get_required(result.source_doc_id)
        audit = doc.ocr_json
        assert audit["provider"] == "gpt"
        assert audit["parsed"]["sheet"]["date_iso"] == "2025-09-24"
        assert audit["raw"]["image_url"] == PUBLIC_URL
        assert audit["raw"]["image_head_status"] == 200
        assert audit["raw"]["parse_strategy"] == "direct"
        assert (audit["raw"]["events_count"], audit["raw"]["normalized_count"], audit["raw"]["rows_count"]) == (4, 4, 2)
        assert audit["parsed_alt"]["date_iso"] == "2025-09-24"
        names = [p["name"] for p in audit["parsed_alt"]["patients"]]
        assert sorted(names) == sorted(["山田太郎", "高橋"])

    @pytest.mark.asyncio
    async def test_pdf_is_sent_as_document(self, service, storage, extractor):
        await service.execute(storage_path="sheets/2025/20250925.pdf")

        storage.download.assert_awaited_once_with("sheets/2025/20250925.pdf")
        content, filename, hint, _ = extractor.extract_from_document.await_args.args
        assert (content, filename, hint) == (b"%PDF-1.4", "20250925.pdf", "2025-09-25")
        extractor.extract_from_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_model_override_is_forwarded(self, service, extractor):
        await service.execute(storage_path=STORAGE_PATH, model="gpt-4o")
        assert extractor.extract_from_image.await_args.kwargs["model"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_append_keeps_earlier_pages(self, db_session, service, extractor):
        first = await service.execute(storage_path=STORAGE_PATH)
        extractor.extract_from_image.return_value = _extraction([
            {"resident_name": "鈴木一郎", "category": "urination", "hour": 15, "count": 1, "confidence": 0.9},
        ])

        second = await service.execute(
            storage_path="sheets/2025/20250925_floor2_p2.jpg",
            source_doc_id=first.source_doc_id,
            append=True,
        )

        assert second.source_doc_id == first.source_doc_id
        rows = await CareEventRepository(db_session).list_by_source_doc(first.source_doc_id)
        assert {r.resident_name for r in rows} == {"山田太郎", "高橋", "鈴木一郎"}

    @pytest.mark.asyncio
    async def test_unknown_source_doc(self, service):
        with pytest.raises(NotFoundError):
            await service.execute(storage_path=STORAGE_PATH, source_doc_id=uuid.uuid4())

    @pytest.mark.asyncio
    async def test_blank_storage_path(self, service):
        with pytest.raises(ValidationError, match="storagePath required"):
            await service.execute(storage_path="  ")

    @pytest.mark.asyncio
    async def test_extraction_failure_is_audited_and_raised(self, db_session, service, extractor):
        extractor.extract_from_image.side_effect = APIClientError("API Client Error 401: bad key")

        with pytest.raises(APIClientError):
            await service.execute(storage_path=STORAGE_PATH)

        docs = await SourceDocRepository(db_session).get_all({"storage_path": STORAGE_PATH})
        assert len(docs) == 1
        assert "401" in docs[0].ocr_json["raw"]["error"]
        assert await CareEventRepository(db_session).count_all() == 0
