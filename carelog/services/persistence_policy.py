"""Write policies for derived care events.

Two mutually exclusive policies decide what a new batch of rows supersedes:

* full replace: every stored row of the source document is replaced, so
  re-running extraction on a document is idempotent;
* overwrite-by-date with append: rows of the batch's dates that belong to
  other documents are removed, rows already stored for this document (earlier
  pages) are kept, and the batch is upserted on the natural key.

Each policy's delete and insert share one transaction.
"""

from typing import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from carelog.models.extraction import CareEventRow
from carelog.repositories.care_event_repository import UPDATABLE_COLUMNS, CareEventRepository
from carelog.services.extraction.row_shaping import dedupe_rows
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)


class CareEventWriter:
    """Apply a write policy to shaped rows and commit it."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.events = CareEventRepository(session)

    async def write(self, source_doc_id: UUID, rows: Sequence[CareEventRow], append: bool = False) -> int:
        """Dispatch to the policy the caller asked for."""
        if append:
            return await self.overwrite_date_and_append(source_doc_id, rows)
        return await self.replace_for_source_doc(source_doc_id, rows)

    async def replace_for_source_doc(self, source_doc_id: UUID, rows: Sequence[CareEventRow]) -> int:
        """Replace every stored row of ``source_doc_id`` with ``rows``.

        An empty batch leaves the stored rows untouched.

        Returns:
            Number of rows inserted
        """
        rows = dedupe_rows(rows)
        if not rows:
            return 0

        try:
            deleted = await self.events.delete_by_source_doc(source_doc_id)
            inserted = await self.events.insert_rows(rows)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            LOGGER.error(
                "Full replace failed",
                exc_info=True,
                extra={"source_doc_id": str(source_doc_id), "rows": len(rows)},
            )
            raise

        LOGGER.info(
            "Replaced care events for source document",
            extra={"source_doc_id": str(source_doc_id), "deleted": deleted, "inserted": inserted},
        )
        return inserted

    async def overwrite_date_and_append(self, source_doc_id: UUID, rows: Sequence[CareEventRow]) -> int:
        """Supersede other documents' rows for the batch dates, keep this document's.

        Returns:
            Number of rows upserted
        """
        rows = dedupe_rows(rows)
        if not rows:
            return 0

        event_dates = {row.event_date for row in rows}
        try:
            deleted = await self.events.delete_by_dates_excluding_source_doc(event_dates, source_doc_id)
            upserted = await self.events.upsert_rows(rows)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            LOGGER.error(
                "Overwrite-by-date append failed",
                exc_info=True,
                extra={"source_doc_id": str(source_doc_id), "rows": len(rows)},
            )
            raise

        LOGGER.info(
            "Appended care events for source document",
            extra={
                "source_doc_id": str(source_doc_id),
                "dates": sorted(d.isoformat() for d in event_dates),
                "deleted_other_docs": deleted,
                "upserted": upserted,
            },
        )
        return upserted

    async def upsert_reviewed(
        self,
        rows: Sequence[CareEventRow],
        update_columns: Sequence[str] = UPDATABLE_COLUMNS,
    ) -> int:
        """Write manually edited rows on the natural key."""
        rows = dedupe_rows(rows)
        if not rows:
            return 0
        try:
            upserted = await self.events.upsert_rows(rows, update_columns=update_columns)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        LOGGER.info("Upserted reviewed care events", extra={"rows": upserted})
        return upserted

    async def delete_all(self) -> int:
        """Delete every care event.

        Returns:
            Row count observed just before the delete
        """
        try:
            before = await self.events.count_all()
            await self.events.delete_all()
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        LOGGER.warning("Deleted all care events", extra={"deleted": before})
        return before
