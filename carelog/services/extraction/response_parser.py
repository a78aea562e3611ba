"""Recover a JSON payload from raw extraction-model text.

Models wrap their JSON in code fences, prepend commentary or get cut off
mid-object. Recovery is an ordered chain of independent strategies; the first
one that yields a value wins and nothing here ever raises.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

STRATEGY_DIRECT = "direct"
STRATEGY_FENCED = "fenced"
STRATEGY_RECOVERED = "recovered"
STRATEGY_EMPTY = "empty"

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

_MISSING = object()


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError, RecursionError):
        return _MISSING


def parse_direct(text: str) -> Optional[Any]:
    """Parse the whole text as JSON."""
    value = _loads(text.strip())
    return None if value is _MISSING else value


def parse_fenced_block(text: str) -> Optional[Any]:
    """Parse the interior of the first ``` or ```json fenced block."""
    match = _FENCE_PATTERN.search(text)
    if not match:
        return None
    value = _loads(match.group(1))
    return None if value is _MISSING else value


def parse_shrinking_slice(text: str) -> Optional[Any]:
    """Parse the longest slice starting at the first ``{`` or ``[``.

    The end of the slice shrinks one character at a time; only ends on a
    closing brace or bracket can produce a valid object or array.
    """
    starts = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    if not starts:
        return None
    start = min(starts)

    for end in range(len(text), start + 1, -1):
        if text[end - 1] not in "}]":
            continue
        value = _loads(text[start:end])
        if value is not _MISSING:
            return value
    return None


PARSE_STRATEGIES: Sequence[Tuple[str, Callable[[str], Optional[Any]]]] = (
    (STRATEGY_DIRECT, parse_direct),
    (STRATEGY_FENCED, parse_fenced_block),
    (STRATEGY_RECOVERED, parse_shrinking_slice),
)


@dataclass
class ParsedResponse:
    """Outcome of parsing one model output.

    Attributes:
        payload: Recovered JSON value, ``{}`` when nothing parsed
        strategy: Name of the strategy that succeeded, or ``empty``
    """

    payload: Any = field(default_factory=dict)
    strategy: str = STRATEGY_EMPTY

    @property
    def event_count(self) -> int:
        return len(events_of(self.payload))


def parse_model_response(text: Optional[str]) -> ParsedResponse:
    """Run the strategy chain over ``text``."""
    if not text or not isinstance(text, str):
        return ParsedResponse()

    for name, strategy in PARSE_STRATEGIES:
        value = strategy(text)
        if value is not None:
            if name != STRATEGY_DIRECT:
                LOGGER.info(
                    "Recovered JSON from model output",
                    extra={"strategy": name, "text_length": len(text)},
                )
            return ParsedResponse(payload=unwrap_payload(value), strategy=name)

    LOGGER.warning(
        "Could not recover JSON from model output",
        extra={"text_preview": text[:200]},
    )
    return ParsedResponse()


def unwrap_payload(payload: Any) -> Any:
    """Lift ``properties.sheet`` / ``properties.events`` to the top level.

    Some models answer with the data nested the way the JSON schema is.
    """
    if not isinstance(payload, dict) or "events" in payload:
        return payload
    properties = payload.get("properties")
    if isinstance(properties, dict) and isinstance(properties.get("events"), list):
        unwrapped = {"events": properties["events"]}
        if "sheet" in properties:
            unwrapped["sheet"] = properties["sheet"]
        return unwrapped
    return payload


def events_of(payload: Any) -> List[Any]:
    """The ``events`` array of a payload, or an empty list."""
    if not isinstance(payload, dict):
        return []
    events = payload.get("events")
    return events if isinstance(events, list) else []


def sheet_date_of(payload: Any) -> Optional[str]:
    """The ``sheet.date_iso`` of a payload when it is a string."""
    if not isinstance(payload, dict):
        return None
    sheet = payload.get("sheet")
    if not isinstance(sheet, dict):
        return None
    value = sheet.get("date_iso")
    return value if isinstance(value, str) else None


@dataclass
class CandidateSelection:
    """Result of choosing among multi-sample outputs.

    Attributes:
        parsed: The chosen candidate
        index: Position of the chosen candidate, -1 when there were none
        event_counts: Number of events in each candidate
    """

    parsed: ParsedResponse
    index: int
    event_counts: List[int] = field(default_factory=list)

    def diagnostics(self) -> Dict[str, Any]:
        return {
            "parse_strategy": self.parsed.strategy,
            "choice_index": self.index,
            "choice_events": self.event_counts,
        }


def select_best_candidate(contents: Sequence[str]) -> CandidateSelection:
    """Parse every candidate and keep the one with the most events.

    Ties go to the earliest candidate.
    """
    best_index = -1
    best_count = -1
    candidates: List[ParsedResponse] = []
    counts: List[int] = []

    for index, content in enumerate(contents):
        parsed = parse_model_response(content)
        count = parsed.event_count
        candidates.append(parsed)
        counts.append(count)
        if count > best_count:
            best_count = count
            best_index = index

    if best_index < 0:
        return CandidateSelection(parsed=ParsedResponse(), index=-1, event_counts=counts)

    if len(candidates) > 1:
        LOGGER.info(
            "Selected best of multiple candidates",
            extra={"choice_index": best_index, "choice_events": counts},
        )
    return CandidateSelection(parsed=candidates[best_index], index=best_index, event_counts=counts)
