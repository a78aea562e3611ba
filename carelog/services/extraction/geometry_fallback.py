"""Rule-based grid reconstruction from OCR token coordinates.

Used when the extraction model returns nothing. Hour columns come from the
digit band at the top of the sheet, category and resident rows from labels in
the left margin, and every remaining mark-like token is assigned to its
nearest column and rows. Only names that resolve against the roster survive,
because coordinate guesses produce many false positives.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set

from carelog.models.extraction import SOURCE_GEOMETRY, SheetExtraction
from carelog.services.extraction.category_mapper import detect_row_category, is_persisted
from carelog.services.extraction.name_matcher import (
    DEFAULT_MATCH_THRESHOLD,
    RosterEntry,
    is_stopword,
    normalize_name,
    pick_resident,
)
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

GEOMETRY_CONFIDENCE = 0.65
DEFAULT_EVENT_CAP = 1024
DEFAULT_MIN_HOUR_COLUMNS = 12

# Vertical tolerance for bands, rows and lines
ROW_TOLERANCE = 8
# Header digits closer than this belong to the same column
COLUMN_MERGE_DISTANCE = 20
# Index into the sorted header-candidate ys that bounds the header band
HEADER_BAND_INDEX = 12
# Name labels sit left of this x
NAME_MARGIN_X = 180

GUIDED_RE = re.compile(r"(?:✓|✔|ﾚ|レ|√|v|V)")
INCONT_RE = re.compile(r"(?:△|Δ|\^)")
_COUNT_RE = re.compile(r"([1-9]\d*)")
_HOUR_LABEL_RE = re.compile(r"^\d{1,2}$")
_NAME_CHAR_RE = re.compile(r"[一-龠々ァ-ヴーA-Za-z]")
_NAME_HEADING_RE = re.compile(r"全て|凡例|合計|計")
_CELL_MARK_RE = re.compile(r"[0-9✓✔ﾚレ√vV△Δ^]")


@dataclass(frozen=True)
class OCRToken:
    """A word box from a text-detection response (top-left corner and size)."""

    text: str
    x: float
    y: float
    w: float = 0
    h: float = 0


@dataclass(frozen=True)
class RowAnchor:
    y: float
    label: str


@dataclass(frozen=True)
class CellMark:
    count: int
    guided: bool
    incontinence: bool

    @property
    def is_blank(self) -> bool:
        return self.count <= 0 and not self.guided and not self.incontinence


def _vertex(vertices: Sequence[Any], index: int) -> Dict[str, Any]:
    if index < len(vertices) and isinstance(vertices[index], dict):
        return vertices[index]
    return {}


def tokens_from_text_annotations(ocr_json: Any) -> List[OCRToken]:
    """Word tokens of a Vision response, sorted top-to-bottom then left-to-right.

    The first annotation holds the full text and is skipped.
    """
    if not isinstance(ocr_json, dict):
        return []
    responses = ocr_json.get("responses")
    if not isinstance(responses, list) or not responses or not isinstance(responses[0], dict):
        return []
    annotations = responses[0].get("textAnnotations") or []

    tokens: List[OCRToken] = []
    for annotation in annotations[1:]:
        if not isinstance(annotation, dict):
            continue
        description = annotation.get("description")
        vertices = (annotation.get("boundingPoly") or {}).get("vertices") or []
        if not description or len(vertices) < 2:
            continue
        x = _vertex(vertices, 0).get("x", 0)
        y = _vertex(vertices, 0).get("y", 0)
        w = abs(_vertex(vertices, 1).get("x", x) - x)
        h = abs(_vertex(vertices, 3).get("y", y) - y)
        tokens.append(OCRToken(text=str(description), x=x, y=y, w=w, h=h))

    tokens.sort(key=lambda t: (t.y, t.x))
    return tokens


def _hour_header_tokens(tokens: Sequence[OCRToken]) -> List[OCRToken]:
    """Digit tokens in the topmost band, left to right, one per column."""
    candidates = [t for t in tokens if _HOUR_LABEL_RE.match(t.text) and int(t.text) <= 23]
    if not candidates:
        return []

    ys = sorted(t.y for t in candidates)
    y_cut = ys[min(len(ys) - 1, HEADER_BAND_INDEX)]
    band = sorted((t for t in candidates if t.y <= y_cut + ROW_TOLERANCE), key=lambda t: t.x)

    columns: List[OCRToken] = []
    for token in band:
        if columns and abs(columns[-1].x - token.x) < COLUMN_MERGE_DISTANCE:
            continue
        columns.append(token)
    return columns


def detect_hour_columns(
    tokens: Sequence[OCRToken],
    min_columns: int = DEFAULT_MIN_HOUR_COLUMNS,
) -> Optional[List[float]]:
    """X position of each hour column; the list index is the hour.

    Returns None when fewer than ``min_columns`` columns are found.
    """
    columns = _hour_header_tokens(tokens)
    if len(columns) < min_columns:
        return None
    return [t.x for t in columns]


def detect_category_rows(tokens: Sequence[OCRToken]) -> List[RowAnchor]:
    """Category row labels, with labels on the same line merged."""
    rows: List[RowAnchor] = []
    for token in tokens:
        category = detect_row_category(token.text)
        if is_persisted(category):
            rows.append(RowAnchor(y=token.y, label=category.value))
    rows.sort(key=lambda r: r.y)

    merged: List[RowAnchor] = []
    for row in rows:
        if not merged or abs(merged[-1].y - row.y) > ROW_TOLERANCE:
            merged.append(row)
    return merged


def _is_name_piece(piece: str) -> bool:
    return bool(piece) and not is_stopword(piece) and not _NAME_HEADING_RE.search(piece)


def detect_resident_names(tokens: Sequence[OCRToken]) -> List[RowAnchor]:
    """Resident name lines in the left margin, pieces joined left to right."""
    name_tokens = sorted(
        (t for t in tokens if t.x < NAME_MARGIN_X and _NAME_CHAR_RE.search(t.text)),
        key=lambda t: (t.y, t.x),
    )

    rows: List[RowAnchor] = []
    current_y: Optional[float] = None
    pieces: List[str] = []
    for token in name_tokens:
        piece = normalize_name(token.text)
        if not _is_name_piece(piece):
            continue
        if current_y is not None and abs(token.y - current_y) <= ROW_TOLERANCE:
            pieces.append(piece)
            continue
        if pieces:
            rows.append(RowAnchor(y=current_y, label="".join(pieces)))
        current_y = token.y
        pieces = [piece]
    if pieces:
        rows.append(RowAnchor(y=current_y, label="".join(pieces)))
    return rows


def parse_cell_mark(text: str) -> CellMark:
    """``'2✓△'`` -> count 2, guided, incontinence.

    A lone check or triangle counts once; text without either and without a
    positive number counts zero.
    """
    guided = bool(GUIDED_RE.search(text))
    incontinence = bool(INCONT_RE.search(text))
    match = _COUNT_RE.search(text)
    if match:
        count = max(1, int(match.group(1)))
    else:
        count = 1 if guided or incontinence else 0
    return CellMark(count=count, guided=guided, incontinence=incontinence)


def _nearest_index(value: float, positions: Sequence[float]) -> int:
    best_index = 0
    best_distance = abs(value - positions[0])
    for index in range(1, len(positions)):
        distance = abs(value - positions[index])
        if distance < best_distance:
            best_distance = distance
            best_index = index
    return best_index


def _nearest_row(y: float, rows: Sequence[RowAnchor]) -> RowAnchor:
    return rows[_nearest_index(y, [r.y for r in rows])]


def _anchor_token_ids(tokens: Sequence[OCRToken], header: Sequence[OCRToken]) -> Set[int]:
    """Tokens that label the grid rather than fill it."""
    anchors = {id(t) for t in header}
    for token in tokens:
        if is_persisted(detect_row_category(token.text)):
            anchors.add(id(token))
        elif token.x < NAME_MARGIN_X and _NAME_CHAR_RE.search(token.text):
            anchors.add(id(token))
    return anchors


class GeometryExtractor:
    """Reconstruct care events from a Vision ``textAnnotations`` response."""

    def __init__(
        self,
        roster: Sequence[RosterEntry],
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
        event_cap: int = DEFAULT_EVENT_CAP,
        min_hour_columns: int = DEFAULT_MIN_HOUR_COLUMNS,
    ):
        self.roster = list(roster)
        self.match_threshold = match_threshold
        self.event_cap = event_cap
        self.min_hour_columns = min_hour_columns

    def extract(self, ocr_json: Any, fallback_date_iso: str) -> SheetExtraction:
        """Return ``{"sheet": {"date_iso": ...}, "events": [...]}``, possibly empty."""
        events: List[Dict[str, Any]] = []
        result = SheetExtraction(
            source=SOURCE_GEOMETRY,
            strategy=SOURCE_GEOMETRY,
            payload={"sheet": {"date_iso": fallback_date_iso}, "events": events},
        )

        tokens = tokens_from_text_annotations(ocr_json)
        if not tokens:
            result.diagnostics = {"tokens": 0}
            return result

        header = _hour_header_tokens(tokens)
        result.diagnostics = {"tokens": len(tokens), "hour_columns": len(header)}
        if len(header) < self.min_hour_columns:
            LOGGER.info(
                "Too few hour columns for geometry fallback",
                extra={"hour_columns": len(header), "required": self.min_hour_columns},
            )
            return result
        hour_xs = [t.x for t in header]

        categories = detect_category_rows(tokens)
        names = detect_resident_names(tokens)
        result.diagnostics.update({"category_rows": len(categories), "name_rows": len(names)})
        if not categories or not names:
            return result

        anchors = _anchor_token_ids(tokens, header)
        unmatched: Set[str] = set()

        for token in tokens:
            if id(token) in anchors or not _CELL_MARK_RE.search(token.text):
                continue

            hour = _nearest_index(token.x, hour_xs)
            if hour > 23:
                continue

            mark = parse_cell_mark(token.text)
            if mark.is_blank:
                continue

            name_row = _nearest_row(token.y, names)
            matched = pick_resident(self.roster, name_row.label, self.match_threshold)
            if matched is None:
                unmatched.add(name_row.label)
                continue

            events.append({
                "resident_name": matched.display_name,
                "category": _nearest_row(token.y, categories).label,
                "hour": hour,
                "count": mark.count,
                "guided": mark.guided,
                "incontinence": mark.incontinence,
                "note": None,
                "confidence": GEOMETRY_CONFIDENCE,
            })
            if len(events) >= self.event_cap:
                LOGGER.warning("Geometry fallback hit event cap", extra={"cap": self.event_cap})
                break

        result.diagnostics["unmatched_names"] = sorted(unmatched)
        LOGGER.info(
            "Geometry fallback finished",
            extra={"events": len(events), "unmatched_names": len(unmatched)},
        )
        return result


def geometry_fallback(
    ocr_json: Any,
    fallback_date_iso: str,
    roster: Sequence[RosterEntry],
    match_threshold: float = DEFAULT_MATCH_THRESHOLD,
) -> Dict[str, Any]:
    """Functional entry point returning the bare payload."""
    return GeometryExtractor(roster, match_threshold=match_threshold).extract(
        ocr_json, fallback_date_iso
    ).payload
