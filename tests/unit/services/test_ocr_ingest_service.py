"""Tests for the Vision OCR ingestion step."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from carelog.core.exceptions import NotFoundError, StorageError
from carelog.repositories.source_doc_repository import SourceDocRepository
from carelog.services.ocr_ingest_service import OCRIngestService

RAW = {"responses": [{"textAnnotations": [{"description": "排泄チェック表"}]}]}


@pytest.fixture
def storage():
    storage = MagicMock()
    storage.create_signed_url = AsyncMock(return_value="https://signed/url?token=t")
    return storage


@pytest.fixture
def ocr():
    ocr = MagicMock()
    ocr.annotate = AsyncMock(return_value=RAW)
    return ocr


@pytest.mark.asyncio
async def test_creates_doc_and_stores_raw_response(db_session, storage, ocr):
    service = OCRIngestService(db_session, storage, ocr)

    doc_id = await service.execute(storage_path="sheets/a.jpg")

    ocr.annotate.assert_awaited_once_with("https://signed/url?token=t")
    doc = await SourceDocRepository(db_session).get_required(doc_id)
    assert doc.storage_path == "sheets/a.jpg"
    assert doc.ocr_json == RAW


@pytest.mark.asyncio
async def test_existing_doc_is_reused(db_session, storage, ocr, source_doc):
    service = OCRIngestService(db_session, storage, ocr)

    doc_id = await service.execute(storage_path="sheets/a.jpg", source_doc_id=source_doc.id)

    assert doc_id == source_doc.id
    assert await SourceDocRepository(db_session).count() == 1


@pytest.mark.asyncio
async def test_unknown_doc(db_session, storage, ocr):
    with pytest.raises(NotFoundError):
        await OCRIngestService(db_session, storage, ocr).execute(
            storage_path="sheets/a.jpg", source_doc_id=uuid.uuid4()
        )


@pytest.mark.asyncio
async def test_storage_failure_propagates(db_session, storage, ocr):
    storage.create_signed_url.side_effect = StorageError("Signed URL error: 404")

    with pytest.raises(StorageError):
        await OCRIngestService(db_session, storage, ocr).execute(storage_path="sheets/a.jpg")

    ocr.annotate.assert_not_awaited()
