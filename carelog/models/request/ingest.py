"""Pydantic request models for the ingestion API endpoints."""

from datetime import date
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from carelog.models.extraction import CareEventRow


class IngestRequest(BaseModel):
    """Request model for the model-based ingestion endpoint.

    Attributes:
        storage_path: ``<bucket>/<path/within/bucket>`` of the uploaded file
        source_doc_id: Existing SourceDoc to write into (append pages)
        model: Extraction model override
        append: Keep this document's earlier rows for the same date
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "storagePath": "sheets/2025/20250925_floor2.jpg",
                    "append": False,
                }
            ]
        },
    )

    storage_path: str = Field(..., alias="storagePath", min_length=1)
    source_doc_id: Optional[UUID] = Field(default=None, alias="sourceDocId")
    model: Optional[str] = Field(default=None, description="Extraction model override")
    append: bool = Field(default=False)


class OCRIngestRequest(BaseModel):
    """Request model for Vision text detection on an uploaded file."""

    model_config = ConfigDict(populate_by_name=True)

    storage_path: str = Field(..., alias="storagePath", min_length=1)
    source_doc_id: Optional[UUID] = Field(default=None, alias="sourceDocId")


class StructureParseRequest(BaseModel):
    """Request model for parsing a SourceDoc's stored OCR response."""

    model_config = ConfigDict(populate_by_name=True)

    source_doc_id: UUID = Field(..., alias="sourceDocId")


class ReviewRow(BaseModel):
    """A care event as edited on the review screen."""

    source_doc_id: UUID
    resident_name: str = Field(..., min_length=1)
    event_date: date
    hour: int = Field(..., ge=0, le=23)
    category: Literal["urination", "defecation", "fluid"]
    count: int = Field(default=1, ge=1)
    guided: bool = False
    incontinence: bool = False
    value: Optional[str] = None
    needs_review: bool = False

    def to_row(self) -> CareEventRow:
        return CareEventRow(**self.model_dump())


class ReviewUpsertRequest(BaseModel):
    rows: List[ReviewRow] = Field(default_factory=list)
