"""Database module for SQLAlchemy models."""

from carelog.core.database import Base, engine, get_async_session, db_client, init_database, close_database
from carelog.database.models import CareEvent, Resident, SourceDoc

__all__ = [
    "Base",
    "engine",
    "get_async_session",
    "db_client",
    "init_database",
    "close_database",
    "CareEvent",
    "Resident",
    "SourceDoc",
]
