"""
Value canonicalization shared by detection, cleaning and linkage.

Every cell goes through the same empty predicate, so "", None, NaN, "-",
"n/a" and friends all count as *empty* everywhere in the engine.
"""

from __future__ import annotations

import math
import re
from typing import Any

ZERO_WIDTH_CHARS = "\u200b\u200c\u200d\u2060\ufeff"
UNICODE_SPACES = "\u00a0\u1680\u180e\u2000-\u200a\u2028\u2029\u202f\u205f\u3000"

ZERO_WIDTH_RE = re.compile(f"[{ZERO_WIDTH_CHARS}]")
UNICODE_SPACE_RE = re.compile(f"[{UNICODE_SPACES}]")
PUNCTUATION_RE = re.compile(r"[^\w\s@.\-]|_")
WHITESPACE_RUN_RE = re.compile(r"\s+")

EMPTY_TOKENS = {
    "",
    "-",
    "--",
    "\u2013",
    "\u2014",
    "n/a",
    "na",
    "null",
    "nil",
    "none",
    "nan",
}


def to_text(value: Any) -> str:
    """Render a scalar as text; integral floats lose their trailing ``.0``."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def strip_invisible(text: str) -> str:
    """Drop zero-width characters, map exotic spaces to a plain space, trim."""
    text = ZERO_WIDTH_RE.sub("", text)
    text = UNICODE_SPACE_RE.sub(" ", text)
    return text.strip()


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str):
        return strip_invisible(value).lower() in EMPTY_TOKENS
    return False


def normalize(raw: Any) -> str:
    if is_empty(raw):
        return ""
    text = strip_invisible(to_text(raw)).lower()
    text = PUNCTUATION_RE.sub(" ", text)
    return WHITESPACE_RUN_RE.sub(" ", text).strip()


def token_sort(raw: Any) -> str:
    """Normalized tokens in lexicographic order, so "Smith, John" == "John Smith"."""
    return " ".join(sorted(normalize(raw).split()))


def extract_domain(email: Any) -> str:
    if is_empty(email):
        return ""
    text = strip_invisible(to_text(email)).lower()
    if text.count("@") != 1:
        return ""
    local, domain = text.split("@")
    if not local or not domain or "." not in domain:
        return ""
    return domain


def duplicate_key(value: Any) -> str:
    """Comparison key for duplicate logic: trimmed and case-insensitive, "" when empty."""
    if is_empty(value):
        return ""
    return strip_invisible(to_text(value)).lower()


CAMEL_BOUNDARY_RE = re.compile(r"([a-z0-9])([A-Z])")
NAME_SPLIT_RE = re.compile(r"[^a-z0-9]+")


def name_tokens(column: str) -> list[str]:
    """Split a column name into lower-case words: "customerEmail_2" -> ["customer", "email", "2"]."""
    spaced = CAMEL_BOUNDARY_RE.sub(r"\1 \2", str(column))
    return [t for t in NAME_SPLIT_RE.split(spaced.lower()) if t]


# Double-encoded UTF-8 read back as cp1252/latin-1: "Ã©", "Ã¼", "â€™", "Â ",
# plus the replacement character and its own mojibake form.
MOJIBAKE_RE = re.compile(
    "\u00c3[\u0080-\u00bf\u0152\u0153\u0160\u0161\u0178\u017d\u017e\u0192\u02c6\u02dc\u2013-\u203a\u20ac\u2122]"
    "|\u00c2[\u0080-\u00bf]|\u00e2\u20ac|\u00ef\u00bf\u00bd|\ufffd"
)


def has_mojibake(value: Any) -> bool:
    return isinstance(value, str) and bool(MOJIBAKE_RE.search(value))
