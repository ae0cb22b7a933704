"""Text normalization helpers shared by the merger and the comparators."""

import re
import unicodedata
from typing import Optional


# Literal placeholders vision models emit instead of JSON null
_EMPTY_PLACEHOLDERS = {"null", "n/a"}

# Punctuation that does not change the meaning of a label value
_PUNCTUATION_RE = re.compile(r"[.,;:!?'\"()\-–—]")


def is_empty_value(value: Optional[str]) -> bool:
    """True if value is None, blank, or a "null"/"n/a" placeholder."""
    if value is None:
        return True
    trimmed = value.strip()
    return not trimmed or trimmed.lower() in _EMPTY_PLACEHOLDERS


def is_blank(value: Optional[str]) -> bool:
    """True if value is None or whitespace only."""
    return value is None or not value.strip()


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace (spaces, tabs, newlines) into single spaces."""
    return re.sub(r"\s+", " ", text).strip()


def normalize_for_comparison(text: str) -> str:
    """Whitespace-collapsed, lowercased form used for equality checks."""
    return normalize_whitespace(text).lower()


def remove_punctuation(text: str) -> str:
    """Strip common punctuation, including curly dashes."""
    return _PUNCTUATION_RE.sub("", text)


def remove_accents(text: str) -> str:
    """
    Strip diacritics by decomposing to NFD and dropping combining marks.

    Examples:
    - "Bärenjäger" -> "Barenjager"
    - "Château" -> "Chateau"
    - "señor" -> "senor"
    """
    if not text:
        return text
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def length_ratio(a: str, b: str) -> float:
    """Length of the shorter string divided by the length of the longer."""
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return min(len(a), len(b)) / longer


def contains_either(a: str, b: str) -> bool:
    """True if either string contains the other."""
    return a in b or b in a
