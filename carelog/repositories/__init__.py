"""Repository layer modules."""

from carelog.repositories.care_event_repository import CareEventRepository
from carelog.repositories.resident_repository import ResidentRepository
from carelog.repositories.source_doc_repository import SourceDocRepository

__all__ = [
    "CareEventRepository",
    "ResidentRepository",
    "SourceDocRepository",
]
