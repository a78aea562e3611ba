"""SQLAlchemy models for all database tables."""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carelog.core.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

CARE_EVENT_KEY_COLUMNS = ("source_doc_id", "resident_name", "event_date", "hour", "category")


class Resident(Base):
    """Roster entry used as the vocabulary for name resolution."""

    __tablename__ = "residents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )


class SourceDoc(Base):
    """One uploaded file, or one logical multi-page document."""

    __tablename__ = "source_docs"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    storage_path: Mapped[str] = mapped_column(String, nullable=False)
    # Raw OCR response or the extraction audit trail
    ocr_json: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    care_events: Mapped[list["CareEvent"]] = relationship(
        "CareEvent", back_populates="source_doc", cascade="all, delete-orphan"
    )


class CareEvent(Base):
    """One resident x category x hour cell of a log sheet."""

    __tablename__ = "care_events"
    __table_args__ = (
        UniqueConstraint(*CARE_EVENT_KEY_COLUMNS, name="uq_care_events_natural_key"),
        CheckConstraint("hour >= 0 AND hour <= 23", name="ck_care_events_hour"),
        CheckConstraint("count >= 1", name="ck_care_events_count"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    source_doc_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("source_docs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    resident_name: Mapped[str] = mapped_column(String, nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    hour: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)  # urination | defecation | fluid
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    guided: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    incontinence: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    source_doc: Mapped["SourceDoc"] = relationship("SourceDoc", back_populates="care_events")
