"""Resident name normalization and fuzzy matching against the roster.

OCR and model output rarely reproduce a resident's name exactly: spaces and
stray digits creep in, characters get swapped. Matching therefore works on a
normalized form and uses an order-insensitive character overlap score.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.6

# Header and legend cells that get misread as names
NAME_STOPWORDS = frozenset({
    "名前",
    "氏名",
    "全て利用",
    "全員",
    "利用者",
    "合計",
    "計",
    "凡例",
    "排尿",
    "排便",
    "水分",
    "誘導",
    "失禁",
    "チェック",
    "チェック欄",
    "name",
    "legend",
    "total",
})

_STRIP_PATTERN = re.compile(r"[0-9\s\-.,()/\\\[\]{}:;・=+*#_|]")


@dataclass(frozen=True)
class RosterEntry:
    """A resident as seen by the matcher.

    Attributes:
        id: Resident id
        display_name: Canonical name written to care events
        candidate: Normalized form used for comparison
    """

    id: str
    display_name: str
    candidate: str

    @classmethod
    def from_resident(cls, resident_id: object, full_name: str) -> "RosterEntry":
        return cls(id=str(resident_id), display_name=full_name, candidate=normalize_name(full_name))


def build_roster(residents: Iterable[object]) -> List[RosterEntry]:
    """Build roster entries from objects exposing ``id`` and ``full_name``."""
    return [RosterEntry.from_resident(r.id, r.full_name) for r in residents]


def normalize_name(value: Optional[str]) -> str:
    """Strip digits, whitespace and punctuation from a name."""
    return _STRIP_PATTERN.sub("", value or "").strip()


def is_stopword(normalized: str) -> bool:
    return normalized in NAME_STOPWORDS


def name_similarity(a: str, b: str) -> float:
    """Score two names in [0, 1].

    Containment scores ``len(shorter) / len(longer)``; otherwise the score is
    the character-set overlap divided by the larger set size.
    """
    a = normalize_name(a)
    b = normalize_name(b)
    if not a or not b:
        return 0.0

    if a in b or b in a:
        shorter = min(len(a), len(b))
        longer = max(len(a), len(b))
        return shorter / longer

    set_a = set(a)
    set_b = set(b)
    return len(set_a & set_b) / max(len(set_a), len(set_b))


def pick_resident(
    roster: Sequence[RosterEntry],
    raw_name: Optional[str],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
) -> Optional[RosterEntry]:
    """Return the best-scoring roster entry, or None below ``threshold``.

    The first entry reaching the maximum score wins ties.
    """
    normalized = normalize_name(raw_name)
    if not normalized or is_stopword(normalized):
        return None

    best: Optional[RosterEntry] = None
    best_score = 0.0
    for entry in roster:
        score = name_similarity(normalized, entry.candidate)
        if score > best_score:
            best_score = score
            best = entry

    if best is None or best_score < threshold:
        LOGGER.debug(
            "No roster match",
            extra={"raw_name": raw_name, "best_score": round(best_score, 3)},
        )
        return None
    return best
