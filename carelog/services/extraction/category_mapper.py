"""Map free-text and Japanese category labels to the closed category set."""

import re
from enum import Enum
from typing import Optional


class Category(str, Enum):
    """Categories recognized on a log sheet."""
    URINATION = "urination"
    DEFECATION = "defecation"
    FLUID = "fluid"
    INCONTINENCE = "incontinence"
    DIAPER_CHANGE = "diaper_change"
    NOTE = "note"


# Only these become care events
PERSISTED_CATEGORIES = frozenset({Category.URINATION, Category.DEFECATION, Category.FLUID})

CATEGORY_LABELS_JA = {
    Category.URINATION: "排尿",
    Category.DEFECATION: "排便",
    Category.FLUID: "水分",
}

# Checked in order; the first family that matches wins
CATEGORY_PATTERNS = [
    (Category.URINATION, re.compile(r"(排尿|尿|おしっこ|pee|urination|urinatio|urine)", re.IGNORECASE)),
    (Category.DEFECATION, re.compile(r"(排便|便|うんち|poop|defecation|defeca|defec|feces|stool)", re.IGNORECASE)),
    (Category.FLUID, re.compile(r"(水分|飲水|摂水|fluid|water|drink|hydration)", re.IGNORECASE)),
    (Category.INCONTINENCE, re.compile(r"(失禁|漏れ|incontinence)", re.IGNORECASE)),
    (Category.DIAPER_CHANGE, re.compile(r"(おむつ|ｵﾑﾂ|オムツ|交換|diaper)", re.IGNORECASE)),
    (Category.NOTE, re.compile(r"(備考|メモ|note|観察|所見|コメント|comment)", re.IGNORECASE)),
]

_ROW_LABEL_PATTERNS = [
    (Category.URINATION, re.compile(r"排尿")),
    (Category.DEFECATION, re.compile(r"排便")),
    (Category.FLUID, re.compile(r"(水分|飲水|摂水)")),
]


def map_category(label: Optional[str]) -> Optional[Category]:
    """Return the category a label names, or None for unknown text."""
    text = (label or "").lower()
    if not text:
        return None
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    return None


def detect_row_category(text: Optional[str]) -> Optional[Category]:
    """Category of a row-label token on the printed grid.

    Exact row headings are checked before the general synonym families.
    """
    compact = re.sub(r"\s", "", text or "")
    for category, pattern in _ROW_LABEL_PATTERNS:
        if pattern.search(compact):
            return category
    return map_category(compact)


def is_persisted(category: Optional[Category]) -> bool:
    return category in PERSISTED_CATEGORIES


def label_ja(category: str) -> str:
    try:
        return CATEGORY_LABELS_JA.get(Category(category), category)
    except ValueError:
        return category
