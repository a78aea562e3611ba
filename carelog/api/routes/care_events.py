"""Care event review and maintenance endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from carelog.core.exceptions import DatabaseError
from carelog.dependencies import get_review_service
from carelog.models.request.ingest import ReviewUpsertRequest
from carelog.models.response.ingest import (
    CareEventOut,
    CleanupResponse,
    ErrorResponse,
    ReviewRowsResponse,
    ReviewUpsertResponse,
)
from carelog.services.review_service import ReviewService
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/cleanup-care-events",
    response_model=CleanupResponse,
    responses={500: {"model": ErrorResponse}},
    summary="Delete every care event",
    description="Destructive admin/debug operation. Reports the row count seen before deleting.",
    operation_id="cleanup_care_events",
)
async def cleanup_care_events(
    service: Annotated[ReviewService, Depends(get_review_service)],
) -> CleanupResponse:
    try:
        deleted = await service.cleanup()
    except SQLAlchemyError as e:
        LOGGER.error("Care event cleanup failed", exc_info=True)
        raise DatabaseError(f"Cleanup failed: {str(e)}", original_error=e) from e
    return CleanupResponse(deleted=deleted)


@router.get(
    "/review/{source_doc_id}",
    response_model=ReviewRowsResponse,
    responses={500: {"model": ErrorResponse}},
    summary="Stored care events of a source document",
    operation_id="get_review_rows",
)
async def get_review_rows(
    source_doc_id: UUID,
    service: Annotated[ReviewService, Depends(get_review_service)],
) -> ReviewRowsResponse:
    try:
        rows = await service.list_rows(source_doc_id)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load review rows: {str(e)}", original_error=e) from e
    return ReviewRowsResponse(rows=[CareEventOut.model_validate(row) for row in rows])


@router.put(
    "/review",
    response_model=ReviewUpsertResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Save reviewed care events",
    operation_id="upsert_review_rows",
)
async def upsert_review_rows(
    request: ReviewUpsertRequest,
    service: Annotated[ReviewService, Depends(get_review_service)],
) -> ReviewUpsertResponse:
    """Upsert edited rows on (source document, resident, date, hour, category)."""
    try:
        upserted = await service.upsert_rows([row.to_row() for row in request.rows])
    except SQLAlchemyError as e:
        LOGGER.error("Review upsert failed", exc_info=True, extra={"rows": len(request.rows)})
        raise DatabaseError(f"Failed to save review rows: {str(e)}", original_error=e) from e
    return ReviewUpsertResponse(upserted=upserted)
