"""Sheet date hints from file names, OCR text and record timestamps."""

import re
from datetime import date, datetime, timezone
from typing import Any, Optional

_PATH_DATE_PATTERNS = (
    re.compile(r"(20\d{2})[-_/]?([01]\d)[-_/]?([0-3]\d)"),
    re.compile(r"(19\d{2})[-_/]?([01]\d)[-_/]?([0-3]\d)"),
)

# "2025 年 9月25日"
_JA_DATE_PATTERN = re.compile(
    r"(20\d{2}|19\d{2})\s*年\s*(1[0-2]|[1-9])\s*月\s*(3[01]|[12]\d|[1-9])\s*日"
)

_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _to_iso(year: str, month: str, day: str) -> Optional[str]:
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def infer_date_from_path(storage_path: Optional[str]) -> Optional[str]:
    """Date embedded in the file name, e.g. ``20220531`` or ``2022-05-31``."""
    if not storage_path:
        return None
    base = storage_path.split("/")[-1]
    for pattern in _PATH_DATE_PATTERNS:
        match = pattern.search(base)
        if match:
            return _to_iso(*match.groups())
    return None


def extract_ja_date(text: Optional[str]) -> Optional[str]:
    """Date written as ``YYYY年M月D日`` in OCR text."""
    if not text:
        return None
    match = _JA_DATE_PATTERN.search(text)
    if not match:
        return None
    return _to_iso(*match.groups())


def parse_iso_date(value: Any) -> Optional[date]:
    """Parse a well-formed ``YYYY-MM-DD`` string into a date."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not _ISO_DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def to_date_iso(moment: Optional[datetime]) -> str:
    """UTC calendar date of a timestamp, today when missing."""
    if moment is None:
        return today_iso()
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date().isoformat()


def resolve_sheet_date(content_date: Any, hint_iso: str) -> str:
    """A well-formed date read from the document beats the hint."""
    parsed = parse_iso_date(content_date)
    return parsed.isoformat() if parsed else hint_iso


def extract_plain_text(ocr_json: Any) -> str:
    """Full text of a Vision ``images:annotate`` response."""
    if not isinstance(ocr_json, dict):
        return ""
    responses = ocr_json.get("responses")
    if not isinstance(responses, list) or not responses or not isinstance(responses[0], dict):
        return ""
    first = responses[0]

    full_text = first.get("fullTextAnnotation")
    if isinstance(full_text, dict) and isinstance(full_text.get("text"), str):
        return full_text["text"]

    annotations = first.get("textAnnotations")
    if isinstance(annotations, list) and annotations and isinstance(annotations[0], dict):
        description = annotations[0].get("description")
        if isinstance(description, str):
            return description
    return ""
