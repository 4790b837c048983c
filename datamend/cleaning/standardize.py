"""
Canonical formats: dates, phone numbers, email addresses and header names.

Unrepairable phones and emails become a sentinel instead of disappearing so
they stay visible for review.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any

from datamend.cleaning.shared import CleaningOperation, CleaningResult, Dataset, map_column
from datamend.config import Settings
from datamend.normalizer import is_empty, to_text
from datamend.parsing import INVALID_EMAIL, INVALID_PHONE, is_valid_email, parse_date

NON_DIGIT_RE = re.compile(r"\D")
DOT_RUN_RE = re.compile(r"\.{2,}")
SPACE_RE = re.compile(r"\s+")
HEADER_SEPARATOR_RE = re.compile(r"[\s\-]+")
HEADER_STRIP_RE = re.compile(r"[^0-9a-z_]")
UNDERSCORE_RUN_RE = re.compile(r"_{2,}")


# ══════════════════════════════════════════════════════════════════════════
# DATES
# ══════════════════════════════════════════════════════════════════════════

def standardize_date(value: Any, dayfirst: bool = True) -> Any:
    if is_empty(value):
        return value
    parsed = parse_date(value, dayfirst)
    return parsed.isoformat() if parsed is not None else value


def standardize_dates(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    return map_column(rows, op.column, lambda v: standardize_date(v, settings.dayfirst))


# ══════════════════════════════════════════════════════════════════════════
# PHONES
# ══════════════════════════════════════════════════════════════════════════

def _format_indian(local: str) -> str:
    return f"+91 ({local[:5]} {local[5:]})"


def _format_north_american(local: str) -> str:
    return f"+1 ({local[:3]}) {local[3:6]}-{local[6:]}"


def standardize_phone(value: Any) -> Any:
    """
    Bracketed E.164-like layout chosen by digit count and leading digit.

    10 digits starting 6-9 read as Indian mobiles, other 10-digit numbers
    starting 2-9 as North American. Country-coded 11-15 digit numbers keep
    their prefix. Anything else becomes ``"Invalid phone"``.
    """
    if is_empty(value):
        return value
    digits = NON_DIGIT_RE.sub("", to_text(value)).lstrip("0")

    if len(digits) == 10 and digits[0] in "6789":
        return _format_indian(digits)
    if len(digits) == 10 and digits[0] in "2345":
        return _format_north_american(digits)
    if len(digits) == 12 and digits.startswith("91"):
        return _format_indian(digits[2:])
    if len(digits) == 11 and digits.startswith("1"):
        return _format_north_american(digits[1:])
    if 11 <= len(digits) <= 15:
        return f"+{digits[:-10]} ({digits[-10:-5]} {digits[-5:]})"
    return INVALID_PHONE


def standardize_phones(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    return map_column(rows, op.column, standardize_phone)


# ══════════════════════════════════════════════════════════════════════════
# EMAILS
# ══════════════════════════════════════════════════════════════════════════

def standardize_email(value: Any) -> Any:
    if is_empty(value):
        return value
    email = SPACE_RE.sub("", to_text(value).lower())
    email = DOT_RUN_RE.sub(".", email)
    email = email.replace("@.", "@").replace(".@", "@")
    email = email.strip(".")
    return email if is_valid_email(email) else INVALID_EMAIL


def standardize_emails(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    return map_column(rows, op.column, standardize_email)


# ══════════════════════════════════════════════════════════════════════════
# HEADERS
# ══════════════════════════════════════════════════════════════════════════

def standardize_header_name(name: str) -> str:
    """"  Customer E-mail (Primary)" -> "customer_e_mail_primary"."""
    text = unicodedata.normalize("NFKD", str(name))
    text = text.encode("ascii", "ignore").decode("ascii").strip().lower()
    text = HEADER_SEPARATOR_RE.sub("_", text)
    text = HEADER_STRIP_RE.sub("", text)
    text = UNDERSCORE_RUN_RE.sub("_", text)
    return text.strip("_")


def build_header_map(columns: list[str]) -> dict[str, str]:
    header_map: dict[str, str] = {}
    used: set[str] = set()
    for i, column in enumerate(columns):
        base = standardize_header_name(column) or f"column_{i + 1}"
        candidate, suffix = base, 2
        while candidate in used:
            candidate = f"{base}_{suffix}"
            suffix += 1
        used.add(candidate)
        header_map[column] = candidate
    return header_map


def standardize_headers(rows: Dataset, op: CleaningOperation, settings: Settings) -> CleaningResult:
    if not rows:
        return CleaningResult([], header_map={})
    columns = list(rows[0].keys())
    header_map = build_header_map(columns)
    renamed = [{header_map[c]: row.get(c) for c in columns} for row in rows]
    return CleaningResult(renamed, header_map=header_map)
