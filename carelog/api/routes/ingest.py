"""Ingestion API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from carelog.dependencies import (
    get_ingestion_service,
    get_ocr_ingest_service,
    get_structure_parse_service,
)
from carelog.models.request.ingest import IngestRequest, OCRIngestRequest, StructureParseRequest
from carelog.models.response.ingest import (
    ErrorResponse,
    IngestResponse,
    OCRIngestResponse,
    StructureParseResponse,
)
from carelog.services.ingestion_service import IngestionService
from carelog.services.ocr_ingest_service import OCRIngestService
from carelog.services.structure_parse_service import StructureParseService
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()

_ERROR_RESPONSES = {
    400: {"description": "Malformed request body", "model": ErrorResponse},
    404: {"description": "Unknown source document", "model": ErrorResponse},
    500: {"description": "Upstream or internal failure", "model": ErrorResponse},
}


@router.post(
    "/ingest",
    response_model=IngestResponse,
    status_code=status.HTTP_200_OK,
    responses=_ERROR_RESPONSES,
    summary="Extract care events from an uploaded sheet",
    description=(
        "Runs the vision model over an uploaded image or PDF page, resolves resident "
        "names against the roster and stores the derived care events."
    ),
    operation_id="ingest_care_sheet",
)
async def ingest(
    request: IngestRequest,
    service: Annotated[IngestionService, Depends(get_ingestion_service)],
) -> IngestResponse:
    """Extract and store the care events of one sheet.

    With ``append`` the rows are added to the document's earlier pages instead
    of replacing them.
    """
    LOGGER.info(
        "Received ingestion request",
        extra={
            "storage_path": request.storage_path,
            "source_doc_id": str(request.source_doc_id) if request.source_doc_id else None,
            "append": request.append,
        },
    )
    result = await service.execute(
        storage_path=request.storage_path,
        source_doc_id=request.source_doc_id,
        model=request.model,
        append=request.append,
    )
    return IngestResponse(
        source_doc_id=result.source_doc_id,
        inserted=result.inserted,
        events=result.events,
        normalized=result.normalized,
        rows=result.rows,
    )


@router.post(
    "/ingest-ocr",
    response_model=OCRIngestResponse,
    responses=_ERROR_RESPONSES,
    summary="Run text detection on an uploaded sheet",
    operation_id="ingest_care_sheet_ocr",
)
async def ingest_ocr(
    request: OCRIngestRequest,
    service: Annotated[OCRIngestService, Depends(get_ocr_ingest_service)],
) -> OCRIngestResponse:
    """Store the Vision OCR response of a file on its SourceDoc."""
    doc_id = await service.execute(
        storage_path=request.storage_path,
        source_doc_id=request.source_doc_id,
    )
    return OCRIngestResponse(source_doc_id=doc_id)


@router.post(
    "/parse-structure",
    response_model=StructureParseResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Parse stored OCR output into care events",
    operation_id="parse_care_sheet_structure",
)
async def parse_structure(
    request: StructureParseRequest,
    service: Annotated[StructureParseService, Depends(get_structure_parse_service)],
) -> StructureParseResponse:
    result = await service.execute(source_doc_id=request.source_doc_id)
    return StructureParseResponse(inserted=result.inserted, hint=result.hint)
