"""Pydantic response models for the ingestion API endpoints."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class IngestResponse(BaseModel):
    """Response model for the model-based ingestion endpoint.

    Attributes:
        ok: Always true on success
        source_doc_id: Document the rows were written to
        inserted: Rows actually written
        events: Events extracted by the model
        normalized: Events after name resolution
        rows: Rows that survived shaping
    """

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    source_doc_id: UUID = Field(..., alias="sourceDocId")
    inserted: int
    events: int
    normalized: int
    rows: int


class OCRIngestResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    source_doc_id: UUID = Field(..., alias="sourceDocId")


class StructureParseResponse(BaseModel):
    """``hint`` explains an empty result."""

    ok: bool = True
    inserted: int
    hint: Optional[str] = None


class CleanupResponse(BaseModel):
    ok: bool = True
    deleted: int


class CareEventOut(BaseModel):
    """A stored care event."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    source_doc_id: UUID
    resident_name: str
    event_date: date
    hour: int
    category: str
    count: int
    guided: bool
    incontinence: bool
    value: Optional[str] = None
    confidence: Optional[float] = None
    needs_review: bool


class ReviewRowsResponse(BaseModel):
    ok: bool = True
    rows: List[CareEventOut] = Field(default_factory=list)


class ReviewUpsertResponse(BaseModel):
    ok: bool = True
    upserted: int


class ErrorResponse(BaseModel):
    """Error response model.

    Attributes:
        ok: Always false
        error: Human-readable error message
    """

    ok: bool = False
    error: str = Field(..., examples=["storagePath required"])


class HealthCheckResponse(BaseModel):
    """Health check response model."""

    status: str = Field(default="healthy", examples=["healthy", "degraded"])
    version: str = Field(..., examples=["0.1.0"])
    service: str = Field(..., examples=["Carelog"])
