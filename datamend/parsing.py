"""
Scalar parsing and format classification.

Detection and cleaning both lean on these helpers so that "what counts as a
number / date / valid email" is decided in exactly one place.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

import pandas as pd

from datamend.normalizer import is_empty, strip_invisible, to_text

NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
THOUSANDS_RE = re.compile(r"^[+-]?\d{1,3}(?:,\d{3})+(?:\.\d+)?$")
NUMERIC_LIKE_RE = re.compile(r"^[0-9,.\s-]+$")
LENIENT_STRIP_RE = re.compile(r"[^0-9.\-]")

EXCEL_EPOCH = datetime(1899, 12, 30)
EXCEL_SERIAL_RANGE = (25_000, 60_000)

MONTH_NAMES = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

DATE_WORDS = {
    "mon", "tue", "wed", "thu", "fri", "sat", "sun",
    "am", "pm", "t", "z", "utc", "gmt", "st", "nd", "rd", "th",
}

BOOLEAN_TOKENS = {"true": True, "false": False}

EMAIL_RE = re.compile(r"^[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,}$")

# Sentinels written by the standardize operations for values that could not
# be repaired. They are already marked for review, so format checks skip them.
INVALID_EMAIL = "invalid_email"
INVALID_PHONE = "Invalid phone"

DATE_BUCKETS = (
    ("iso", re.compile(r"^\d{4}-\d{2}-\d{2}$")),
    ("us", re.compile(r"^\d{2}/\d{2}/\d{4}$")),
    ("eu", re.compile(r"^\d{1,2}[.\-]\d{1,2}[.\-]\d{4}$")),
    ("text", re.compile(r"^(?:[A-Za-z]{3,9}\.?\s\d{1,2},?\s\d{4}|\d{1,2}\s[A-Za-z]{3,9}\.?,?\s\d{4})$")),
    ("serial", re.compile(r"^\d+(?:\.\d+)?$")),
)

PHONE_BUCKETS = (
    ("standard", re.compile(r"^\+\d{1,3}-\d{3}-\d{3}-\d{4}$")),
    ("standard", re.compile(r"^\+\d{1,5} \(\d{3}\) \d{3}-\d{4}$")),
    ("standard", re.compile(r"^\+\d{1,5} \(\d{5} \d{5}\)$")),
    ("dashed", re.compile(r"^\d{3}-\d{3}-\d{4}$")),
    ("parenthesized", re.compile(r"^\(\d{3}\)\s?\d{3}-\d{4}$")),
    ("plain", re.compile(r"^\d{10}$")),
    ("dotted", re.compile(r"^\d{3}\.\d{3}\.\d{4}$")),
    ("international", re.compile(r"^\+?\d{1,3}[-\s]?\d{4,14}$")),
)


# ══════════════════════════════════════════════════════════════════════════
# NUMBERS
# ══════════════════════════════════════════════════════════════════════════

def to_number(value: Any) -> float | None:
    """Strict numeric coercion: real numbers and plain numeric strings only."""
    if isinstance(value, bool) or is_empty(value):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = strip_invisible(str(value))
    if THOUSANDS_RE.match(text):
        text = text.replace(",", "")
    if not NUMBER_RE.match(text):
        return None
    return float(text)


def coerce_number(value: Any) -> float | None:
    """Lenient coercion that also accepts "$1,200", "12 kg" and the like."""
    number = to_number(value)
    if number is not None:
        return number
    if isinstance(value, bool) or is_empty(value):
        return None
    text = LENIENT_STRIP_RE.sub("", str(value))
    if not text or not NUMBER_RE.match(text):
        return None
    return float(text)


def as_number(number: float) -> int | float:
    """Integral floats come back as ints so 3.0 is written as 3."""
    if number.is_integer():
        return int(number)
    return number


def is_numeric_string(value: Any) -> bool:
    """A string (not a real number) that could be converted to one."""
    if not isinstance(value, str) or is_empty(value):
        return False
    text = value.strip()
    if not NUMERIC_LIKE_RE.match(text):
        return False
    candidate = text.replace(",", "").replace(" ", "")
    return bool(NUMBER_RE.match(candidate))


def parse_numeric_string(value: str) -> int | float | None:
    if not is_numeric_string(value):
        return None
    return as_number(float(value.strip().replace(",", "").replace(" ", "")))


# ══════════════════════════════════════════════════════════════════════════
# DATES
# ══════════════════════════════════════════════════════════════════════════

def _is_date_word(word: str) -> bool:
    word = word.lower()
    return word in MONTH_NAMES or word in DATE_WORDS or word[:3] in DATE_WORDS


def _to_utc_date(dt: datetime) -> date:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date()


def _day_month(a: int, b: int, year: int, dayfirst: bool) -> date | None:
    orders = [(a, b), (b, a)] if dayfirst else [(b, a), (a, b)]
    for day, month in orders:
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return None


def _excel_serial(number: float) -> date | None:
    low, high = EXCEL_SERIAL_RANGE
    if not low <= number <= high:
        return None
    return (EXCEL_EPOCH + timedelta(days=number)).date()


def parse_date(value: Any, dayfirst: bool = True) -> date | None:
    """
    Parse a cell into a calendar date (UTC for timezone-aware values).

    Ambiguous slashed/dashed dates follow ``dayfirst`` and fall back to the
    other order when the preferred one is impossible. Two-digit years map to
    2000-2049 for YY < 50, 1950-1999 otherwise.
    """
    if is_empty(value) or isinstance(value, bool):
        return None
    if isinstance(value, pd.Timestamp):
        return _to_utc_date(value.to_pydatetime())
    if isinstance(value, datetime):
        return _to_utc_date(value)
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _excel_serial(float(value))

    v = strip_invisible(str(value))

    m = re.match(r"^(\d{4})-(\d{1,2})-(\d{1,2})$", v)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None

    # ISO 8601 with time, possibly with an offset
    if re.match(r"^\d{4}-\d{2}-\d{2}[T ]\d{1,2}:\d{2}", v):
        try:
            return _to_utc_date(datetime.fromisoformat(v.replace("Z", "+00:00")))
        except ValueError:
            pass

    m = re.match(r"^(\d{4})/(\d{1,2})/(\d{1,2})$", v)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None

    m = re.match(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4})$", v)
    if m:
        return _day_month(int(m.group(1)), int(m.group(2)), int(m.group(3)), dayfirst)

    m = re.match(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2})$", v)
    if m:
        yr = int(m.group(3))
        year = 2000 + yr if yr < 50 else 1900 + yr
        return _day_month(int(m.group(1)), int(m.group(2)), year, dayfirst)

    m = re.match(r"^(\d{4})(\d{2})(\d{2})$", v)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            pass

    m = re.match(r"^([A-Za-z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})$", v)
    if m:
        month = MONTH_NAMES.get(m.group(1).lower())
        if month:
            try:
                return date(int(m.group(3)), month, int(m.group(2)))
            except ValueError:
                return None

    m = re.match(r"^(\d{1,2})(?:st|nd|rd|th)?\s+([A-Za-z]+)\.?,?\s+(\d{4})$", v)
    if m:
        month = MONTH_NAMES.get(m.group(2).lower())
        if month:
            try:
                return date(int(m.group(3)), month, int(m.group(1)))
            except ValueError:
                return None

    if NUMBER_RE.match(v):
        return _excel_serial(float(v))

    # Anything else must look like it carries a date before pandas gets a go:
    # three digit groups, or two with a month name ("1/2" is a fraction), and
    # letters only where they spell a month, weekday or time marker.
    if re.search(r"\d{5,}|[()+@]", v):
        return None
    words = re.findall(r"[A-Za-z]+", v)
    if any(not _is_date_word(w) for w in words):
        return None
    digit_groups = len(re.findall(r"\d+", v))
    has_month = any(w.lower() in MONTH_NAMES for w in words)
    if digit_groups < 2 or (digit_groups < 3 and not has_month):
        return None
    try:
        parsed = pd.to_datetime(v, errors="coerce", dayfirst=dayfirst)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed) or not isinstance(parsed, pd.Timestamp):
        return None
    return _to_utc_date(parsed.to_pydatetime())


def date_bucket(value: Any) -> str:
    if isinstance(value, (datetime, date, pd.Timestamp)):
        return "native"
    text = strip_invisible(to_text(value))
    for label, pattern in DATE_BUCKETS:
        if pattern.match(text):
            return label
    return "unknown"


# ══════════════════════════════════════════════════════════════════════════
# PHONES / EMAILS
# ══════════════════════════════════════════════════════════════════════════

def phone_bucket(value: Any) -> str:
    text = strip_invisible(to_text(value))
    if text == INVALID_PHONE:
        return "invalid"
    for label, pattern in PHONE_BUCKETS:
        if pattern.match(text):
            return label
    return "other"


def is_valid_email(value: Any) -> bool:
    email = strip_invisible(to_text(value)).lower()
    if not EMAIL_RE.match(email):
        return False
    if ".." in email or " " in email:
        return False
    if email.startswith(".") or email.endswith("."):
        return False
    return email.count("@") == 1


# ══════════════════════════════════════════════════════════════════════════
# TYPE CLASSIFICATION
# ══════════════════════════════════════════════════════════════════════════

def value_kind(value: Any, dayfirst: bool = True) -> str:
    """Classify a non-empty cell as number / boolean / date / string."""
    if isinstance(value, bool):
        return "boolean"
    if to_number(value) is not None:
        return "number"
    if isinstance(value, str) and value.strip().lower() in BOOLEAN_TOKENS:
        return "boolean"
    if isinstance(value, (datetime, date, pd.Timestamp)):
        return "date"
    if isinstance(value, str) and parse_date(value, dayfirst) is not None:
        return "date"
    return "string"


def infer_column_type(values: list[Any], sample_size: int = 15) -> str:
    """Column type from the first non-empty cells: number, date or string."""
    sample = [v for v in values if not is_empty(v)][:sample_size]
    if not sample:
        return "string"
    if all(to_number(v) is not None for v in sample):
        return "number"
    if all(parse_date(v) is not None for v in sample):
        return "date"
    return "string"


# ══════════════════════════════════════════════════════════════════════════
# STATISTICS
# ══════════════════════════════════════════════════════════════════════════

def numeric_values(values: list[Any]) -> list[float]:
    numbers = []
    for value in values:
        number = to_number(value)
        if number is not None:
            numbers.append(number)
    return numbers


def quartiles(numbers: list[float]) -> tuple[float, float]:
    """Q1/Q3 by sorted position: ``sorted[floor(n*0.25)]`` and ``sorted[floor(n*0.75)]``."""
    ordered = sorted(numbers)
    n = len(ordered)
    return ordered[int(n * 0.25)], ordered[int(n * 0.75)]


def iqr_fences(numbers: list[float], multiplier: float = 1.5) -> tuple[float, float]:
    q1, q3 = quartiles(numbers)
    iqr = q3 - q1
    return q1 - multiplier * iqr, q3 + multiplier * iqr
