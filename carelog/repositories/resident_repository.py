from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carelog.database.models import Resident
from carelog.repositories.base_repository import BaseRepository
from carelog.services.extraction.name_matcher import RosterEntry, build_roster


class ResidentRepository(BaseRepository[Resident]):
    """Read access to the roster.

    The roster is edited elsewhere; the pipeline reads it fresh on every
    request so renames apply without a restart.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Resident)

    async def list_residents(self) -> List[Resident]:
        query = select(Resident).order_by(Resident.created_at, Resident.full_name)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def load_roster(self) -> List[RosterEntry]:
        """Snapshot of the roster in matcher form."""
        return build_roster(await self.list_residents())
