"""Pytest configuration and shared fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import uuid
from typing import Any, Dict, List, Sequence

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from carelog.core.database import Base
from carelog.database import models  # noqa: F401
from carelog.database.models import Resident, SourceDoc
from carelog.main import app
from carelog.services.extraction.name_matcher import RosterEntry


@pytest.fixture
def test_client() -> TestClient:
    """FastAPI test client; the lifespan (database startup) is not run."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """Session on a fresh in-memory SQLite database with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def roster_names() -> List[str]:
    return ["山田太郎", "佐藤花子", "鈴木一郎"]


@pytest.fixture
def roster(roster_names) -> List[RosterEntry]:
    return [RosterEntry.from_resident(uuid.uuid4(), name) for name in roster_names]


@pytest_asyncio.fixture
async def seeded_residents(db_session, roster_names) -> List[Resident]:
    residents = [Resident(full_name=name) for name in roster_names]
    db_session.add_all(residents)
    await db_session.commit()
    return residents


@pytest_asyncio.fixture
async def source_doc(db_session) -> SourceDoc:
    doc = SourceDoc(storage_path="sheets/2025/20250925_floor2.jpg")
    db_session.add(doc)
    await db_session.commit()
    return doc


def _box(x: float, y: float, w: float = 16, h: float = 16) -> Dict[str, Any]:
    return {
        "vertices": [
            {"x": x, "y": y},
            {"x": x + w, "y": y},
            {"x": x + w, "y": y + h},
            {"x": x, "y": y + h},
        ]
    }


def make_vision_response(
    words: Sequence[tuple], full_text: str = "", with_full_text: bool = True
) -> Dict[str, Any]:
    """Build an ``images:annotate`` response from ``(text, x, y)`` words."""
    annotations = [{"description": full_text or " ".join(w[0] for w in words), "boundingPoly": _box(0, 0)}]
    annotations += [{"description": text, "boundingPoly": _box(x, y)} for text, x, y in words]
    response: Dict[str, Any] = {"textAnnotations": annotations}
    if with_full_text:
        response["fullTextAnnotation"] = {"text": full_text}
    return {"responses": [response]}


# Column x of hour h
HOUR_X0 = 200
HOUR_STEP = 30


def hour_x(hour: int) -> int:
    return HOUR_X0 + hour * HOUR_STEP


def grid_words(hours: int = 24, cells: Sequence[tuple] = ()) -> List[tuple]:
    """Header band, one resident block with three category rows, and cells.

    ``cells`` are ``(text, hour, row)`` with row 0 urination, 1 defecation,
    2 fluid.
    """
    words = [(str(h), hour_x(h), 50) for h in range(hours)]
    words += [
        ("山田", 20, 100),
        ("太郎", 60, 100),
        ("排尿", 120, 100),
        ("排便", 120, 130),
        ("水分", 120, 160),
    ]
    words += [(text, hour_x(hour), 100 + row * 30) for text, hour, row in cells]
    return words


@pytest.fixture
def grid_ocr_json() -> Dict[str, Any]:
    words = grid_words(cells=[("2✓", 8, 0), ("△", 10, 1), ("1", 14, 2)])
    return make_vision_response(words, full_text="排泄チェック表 2025年9月25日")


@pytest.fixture
def build_grid_ocr():
    """Factory for Vision responses of a one-resident grid."""
    def _build(cells: Sequence[tuple] = (), hours: int = 24, full_text: str = "") -> Dict[str, Any]:
        return make_vision_response(grid_words(hours, cells), full_text=full_text)
    return _build
