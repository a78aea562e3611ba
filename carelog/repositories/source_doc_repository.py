from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from carelog.core.exceptions import NotFoundError
from carelog.database.models import SourceDoc
from carelog.repositories.base_repository import BaseRepository
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)


class SourceDocRepository(BaseRepository[SourceDoc]):
    """Repository for uploaded source documents."""

    def __init__(self, session: AsyncSession):
        """Initialize source document repository.

        Args:
            session: SQLAlchemy async session
        """
        super().__init__(session, SourceDoc)

    async def create_source_doc(self, storage_path: str) -> SourceDoc:
        """Register a newly uploaded file.

        Args:
            storage_path: ``<bucket>/<path>`` of the stored file

        Returns:
            The new SourceDoc, flushed so its id is available
        """
        doc = await self.create(storage_path=storage_path)
        LOGGER.info(
            "Created source document",
            extra={"source_doc_id": str(doc.id), "storage_path": storage_path},
        )
        return doc

    async def get_required(self, source_doc_id: UUID) -> SourceDoc:
        """Get a source document or raise NotFoundError."""
        doc = await self.get_by_id(source_doc_id)
        if doc is None:
            raise NotFoundError(f"Source document {source_doc_id} not found")
        return doc

    async def update_ocr_json(
        self, source_doc_id: UUID, ocr_json: Dict[str, Any]
    ) -> Optional[SourceDoc]:
        """Replace the stored OCR response or audit trail."""
        return await self.update(source_doc_id, ocr_json=ocr_json)
