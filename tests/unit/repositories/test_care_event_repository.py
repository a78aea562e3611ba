"""Tests for care event data access primitives."""

from datetime import date

import pytest
import pytest_asyncio

from carelog.database.models import SourceDoc
from carelog.models.extraction import CareEventRow
from carelog.repositories.care_event_repository import UPSERT_BATCH_SIZE, CareEventRepository
from carelog.repositories.resident_repository import ResidentRepository

DAY = date(2025, 9, 25)


@pytest_asyncio.fixture
async def doc_ids(db_session):
    docs = [SourceDoc(storage_path=f"sheets/{i}.jpg") for i in range(2)]
    db_session.add_all(docs)
    await db_session.commit()
    return [d.id for d in docs]


@pytest.mark.asyncio
async def test_upsert_more_rows_than_one_batch(db_session, doc_ids):
    repo = CareEventRepository(db_session)
    rows = [
        CareEventRow(doc_ids[0], f"resident-{i}", DAY, hour, "urination")
        for i in range(3)
        for hour in range(24)
    ]
    assert len(rows) > UPSERT_BATCH_SIZE

    assert await repo.upsert_rows(rows) == len(rows)
    await db_session.commit()

    assert await repo.count_all() == len(rows)


@pytest.mark.asyncio
async def test_delete_by_dates_spares_own_doc_and_other_dates(db_session, doc_ids):
    repo = CareEventRepository(db_session)
    own, other = doc_ids
    await repo.insert_rows([
        CareEventRow(own, "山田太郎", DAY, 1, "fluid"),
        CareEventRow(other, "山田太郎", DAY, 1, "fluid"),
        CareEventRow(other, "山田太郎", date(2025, 9, 26), 1, "fluid"),
    ])
    await db_session.commit()

    deleted = await repo.delete_by_dates_excluding_source_doc([DAY], own)
    await db_session.commit()

    assert deleted == 1
    assert len(await repo.list_by_source_doc(own)) == 1
    assert [r.event_date for r in await repo.list_by_source_doc(other)] == [date(2025, 9, 26)]


@pytest.mark.asyncio
async def test_delete_by_no_dates_is_noop(db_session, doc_ids):
    assert await CareEventRepository(db_session).delete_by_dates_excluding_source_doc([], doc_ids[0]) == 0


@pytest.mark.asyncio
async def test_load_roster(db_session, seeded_residents):
    roster = await ResidentRepository(db_session).load_roster()
    assert {entry.display_name for entry in roster} == {"山田太郎", "佐藤花子", "鈴木一郎"}
    assert all(entry.candidate == entry.display_name for entry in roster)
