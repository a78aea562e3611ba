"""Centralized dependency injection for the FastAPI application.

Outbound clients and thresholds are read from settings here and passed into
the services explicitly; nothing below the API layer reads settings.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carelog.core.config import settings
from carelog.core.database import get_async_session
from carelog.core.openai_client import OpenAIChatClient
from carelog.services.extraction.model_extractor import VisionSheetExtractor
from carelog.services.ingestion_service import IngestionService
from carelog.services.ocr_ingest_service import OCRIngestService
from carelog.services.review_service import ReviewService
from carelog.services.storage_service import StorageService
from carelog.services.structure_parse_service import StructureParseService
from carelog.services.vision_ocr import VisionOCRService


def get_storage_service() -> StorageService:
    """Get the Supabase storage service."""
    return StorageService(
        url=settings.storage.url,
        service_role_key=settings.storage.service_role_key,
        signed_url_ttl_seconds=settings.storage.signed_url_ttl_seconds,
        timeout=settings.http_timeout,
    )


def get_vision_ocr_service() -> VisionOCRService:
    """Get the Google Vision text detection service."""
    return VisionOCRService(
        api_key=settings.vision.api_key,
        api_url=settings.vision.api_url,
        language_hints=settings.vision.language_hints,
        timeout=settings.ocr_timeout,
        max_retries=settings.max_retries,
    )


def _chat_client() -> OpenAIChatClient:
    return OpenAIChatClient(
        api_key=settings.llm.openai_api_key,
        base_url=settings.llm.openai_api_url,
        timeout=settings.llm.timeout_seconds,
        max_retries=settings.llm.max_retries,
    )


def get_vision_extractor() -> VisionSheetExtractor:
    """Extractor for sheet images and PDFs."""
    return VisionSheetExtractor(
        client=_chat_client(),
        model=settings.llm.vision_model,
        high_accuracy=settings.llm.high_accuracy,
        max_tokens=settings.llm.max_tokens,
        n=settings.llm.n,
    )


def get_structure_extractor() -> VisionSheetExtractor:
    """Extractor for stored OCR text."""
    return VisionSheetExtractor(client=_chat_client(), model=settings.llm.structure_model)


async def get_ingestion_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)],
    storage: Annotated[StorageService, Depends(get_storage_service)],
    extractor: Annotated[VisionSheetExtractor, Depends(get_vision_extractor)],
) -> IngestionService:
    """Get the model-based ingestion orchestrator.

    Args:
        db_session: Database session from dependency injection
        storage: Storage service
        extractor: Image/PDF extractor

    Returns:
        IngestionService: Orchestrator bound to this request's session
    """
    return IngestionService(
        session=db_session,
        storage=storage,
        extractor=extractor,
        match_threshold=settings.extraction.name_match_threshold,
        review_threshold=settings.extraction.review_confidence_threshold,
    )


async def get_ocr_ingest_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)],
    storage: Annotated[StorageService, Depends(get_storage_service)],
    ocr: Annotated[VisionOCRService, Depends(get_vision_ocr_service)],
) -> OCRIngestService:
    return OCRIngestService(session=db_session, storage=storage, ocr=ocr)


async def get_structure_parse_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)],
    extractor: Annotated[VisionSheetExtractor, Depends(get_structure_extractor)],
) -> StructureParseService:
    return StructureParseService(
        session=db_session,
        extractor=extractor,
        match_threshold=settings.extraction.name_match_threshold,
        review_threshold=settings.extraction.review_confidence_threshold,
        geometry_event_cap=settings.extraction.geometry_event_cap,
        geometry_min_hour_columns=settings.extraction.geometry_min_hour_columns,
    )


async def get_review_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ReviewService:
    return ReviewService(db_session)
