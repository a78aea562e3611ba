"""Turn extracted events into persistable care-event rows."""

import math
from datetime import date
from numbers import Real
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from uuid import UUID

from carelog.models.extraction import CareEventRow
from carelog.services.extraction.category_mapper import is_persisted, label_ja, map_category
from carelog.services.extraction.name_matcher import (
    DEFAULT_MATCH_THRESHOLD,
    RosterEntry,
    pick_resident,
)
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

MATCHED_FLAG = "_matched"
DEFAULT_REVIEW_THRESHOLD = 0.75
MAX_COUNT = 2**31 - 1


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_finite(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value)


def _as_hour(value: Any) -> Optional[int]:
    """Hour as an int, accepting integral floats such as ``3.0``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and 0 <= value <= 23:
        return value
    return None


def resolve_names(
    events: Iterable[Any],
    roster: Sequence[RosterEntry],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    keep_unmatched: bool = True,
) -> List[Dict[str, Any]]:
    """Replace raw names with roster display names.

    Every returned event carries ``_matched``. Unmatched events keep their raw
    name when ``keep_unmatched`` is set and are dropped otherwise.
    """
    resolved: List[Dict[str, Any]] = []
    dropped = 0
    for event in events:
        if not isinstance(event, Mapping):
            continue
        raw_name = event.get("resident_name")
        raw_name = raw_name if isinstance(raw_name, str) else ""
        matched = pick_resident(roster, raw_name, threshold)

        if matched is None and not keep_unmatched:
            dropped += 1
            continue

        resolved.append({
            **event,
            "resident_name": matched.display_name if matched else raw_name,
            MATCHED_FLAG: matched is not None,
        })

    if dropped:
        LOGGER.info("Dropped events with unmatched names", extra={"dropped": dropped})
    return resolved


def shape_row(
    event: Mapping[str, Any],
    source_doc_id: UUID,
    event_date: date,
    default_confidence: float,
    review_threshold: float = DEFAULT_REVIEW_THRESHOLD,
) -> Optional[CareEventRow]:
    """Shape one event, or None when it cannot become a stored row."""
    category = map_category(event.get("category") if isinstance(event.get("category"), str) else None)
    if not is_persisted(category):
        return None

    hour = _as_hour(event.get("hour"))
    if hour is None:
        return None

    resident_name = event.get("resident_name")
    if not isinstance(resident_name, str) or not resident_name.strip():
        return None

    count = event.get("count")
    count = int(count) if _is_finite(count) and 1 <= count <= MAX_COUNT else 1

    # A confidence outside [0, 1] is not trusted: stored as the default, flagged.
    raw_confidence = event.get("confidence")
    if not _is_number(raw_confidence):
        confidence, review_score = default_confidence, 1.0
    elif _is_finite(raw_confidence) and 0 <= raw_confidence <= 1:
        confidence = review_score = float(raw_confidence)
    else:
        confidence, review_score = default_confidence, 0.0
    matched = bool(event.get(MATCHED_FLAG, True))

    note = event.get("note")
    return CareEventRow(
        source_doc_id=source_doc_id,
        resident_name=resident_name,
        event_date=event_date,
        hour=hour,
        category=category.value,
        count=count,
        guided=bool(event.get("guided")),
        incontinence=bool(event.get("incontinence")),
        value=note if isinstance(note, str) else None,
        confidence=confidence,
        needs_review=review_score < review_threshold or not matched,
    )


def shape_rows(
    events: Iterable[Mapping[str, Any]],
    source_doc_id: UUID,
    event_date: date,
    default_confidence: float,
    review_threshold: float = DEFAULT_REVIEW_THRESHOLD,
) -> List[CareEventRow]:
    """Shape events, silently dropping the ones that do not qualify."""
    rows = []
    for event in events:
        row = shape_row(event, source_doc_id, event_date, default_confidence, review_threshold)
        if row is not None:
            rows.append(row)
    return dedupe_rows(rows)


def dedupe_rows(rows: Iterable[CareEventRow]) -> List[CareEventRow]:
    """Collapse rows sharing a natural key; the later row wins."""
    by_key: Dict[tuple, CareEventRow] = {}
    for row in rows:
        by_key[row.key] = row
    return list(by_key.values())


def build_patients_view(rows: Iterable[CareEventRow], date_iso: str) -> Dict[str, Any]:
    """Group rows by resident for review tooling."""
    patients: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        if not row.resident_name:
            continue
        patient = patients.setdefault(row.resident_name, {"name": row.resident_name, "events": []})
        patient["events"].append({
            "hour": row.hour,
            "category": label_ja(row.category),
            "type": row.category,
            "count": row.count,
        })
    return {"date_iso": date_iso, "patients": list(patients.values())}
