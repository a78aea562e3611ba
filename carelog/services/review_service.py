"""Review tooling support: read, edit and purge care events."""

from typing import List, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from carelog.database.models import CareEvent
from carelog.models.extraction import CareEventRow
from carelog.repositories.care_event_repository import CareEventRepository
from carelog.services.persistence_policy import CareEventWriter
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

# A reviewer's edit keeps the stored extraction confidence
REVIEW_UPDATE_COLUMNS = ("count", "guided", "incontinence", "value", "needs_review")


class ReviewService:
    """Operations behind the review screens and the admin cleanup."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.events = CareEventRepository(session)
        self.writer = CareEventWriter(session)

    async def list_rows(self, source_doc_id: UUID) -> List[CareEvent]:
        return await self.events.list_by_source_doc(source_doc_id)

    async def upsert_rows(self, rows: Sequence[CareEventRow]) -> int:
        return await self.writer.upsert_reviewed(rows, update_columns=REVIEW_UPDATE_COLUMNS)

    async def cleanup(self) -> int:
        """Delete every care event and return how many there were."""
        return await self.writer.delete_all()
