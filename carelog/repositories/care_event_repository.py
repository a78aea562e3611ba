import uuid
from datetime import date
from typing import Any, Dict, Iterable, List, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carelog.core.exceptions import DatabaseError
from carelog.database.models import CARE_EVENT_KEY_COLUMNS, CareEvent
from carelog.models.extraction import CareEventRow
from carelog.repositories.base_repository import BaseRepository
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Rows per INSERT .. ON CONFLICT statement; keeps SQLite under its bind limit
UPSERT_BATCH_SIZE = 50

UPDATABLE_COLUMNS = (
    "count",
    "guided",
    "incontinence",
    "value",
    "confidence",
    "needs_review",
)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CareEventRepository(BaseRepository[CareEvent]):
    """Repository for care events.

    Provides the primitives the write policies are built from. Nothing here
    commits.
    """

    def __init__(self, session: AsyncSession):
        """Initialize care event repository.

        Args:
            session: SQLAlchemy async session
        """
        super().__init__(session, CareEvent)

    async def list_by_source_doc(self, source_doc_id: UUID) -> List[CareEvent]:
        """Rows of one source document in sheet order."""
        query = (
            select(CareEvent)
            .where(CareEvent.source_doc_id == source_doc_id)
            .order_by(
                CareEvent.event_date,
                CareEvent.resident_name,
                CareEvent.category,
                CareEvent.hour,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def delete_by_source_doc(self, source_doc_id: UUID) -> int:
        """Delete every row of a source document."""
        stmt = (
            delete(CareEvent)
            .where(CareEvent.source_doc_id == source_doc_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete_by_dates_excluding_source_doc(
        self, event_dates: Iterable[date], source_doc_id: UUID
    ) -> int:
        """Delete rows of the given dates that belong to other source documents."""
        dates = sorted(set(event_dates))
        if not dates:
            return 0
        stmt = (
            delete(CareEvent)
            .where(CareEvent.event_date.in_(dates))
            .where(CareEvent.source_doc_id != source_doc_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def insert_rows(self, rows: Sequence[CareEventRow]) -> int:
        """Insert shaped rows as new records."""
        if not rows:
            return 0
        self.session.add_all([CareEvent(**row.as_record()) for row in rows])
        await self.session.flush()
        return len(rows)

    async def upsert_rows(
        self,
        rows: Sequence[CareEventRow],
        update_columns: Sequence[str] = UPDATABLE_COLUMNS,
    ) -> int:
        """Insert rows, overwriting any stored row with the same natural key."""
        if not rows:
            return 0

        dialect = self.session.get_bind().dialect.name
        dialect_insert = _DIALECT_INSERTS.get(dialect)
        if dialect_insert is None:
            raise DatabaseError(f"Upsert is not supported on {dialect}")

        records: List[Dict[str, Any]] = [
            {"id": uuid.uuid4(), **row.as_record()} for row in rows
        ]
        try:
            for start in range(0, len(records), UPSERT_BATCH_SIZE):
                stmt = dialect_insert(CareEvent).values(records[start:start + UPSERT_BATCH_SIZE])
                set_columns = {name: stmt.excluded[name] for name in update_columns}
                set_columns["updated_at"] = func.now()
                stmt = stmt.on_conflict_do_update(
                    index_elements=list(CARE_EVENT_KEY_COLUMNS),
                    set_=set_columns,
                )
                await self.session.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error upserting care events: {str(e)}",
                exc_info=True,
                extra={"rows": len(records)}
            )
            raise

        return len(records)

    async def count_all(self) -> int:
        return await self.count()

    async def delete_all(self) -> int:
        """Delete every care event."""
        stmt = delete(CareEvent).execution_options(synchronize_session=False)
        result = await self.session.execute(stmt)
        return result.rowcount or 0
