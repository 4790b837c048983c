"""Whole-column operations: dropping empty columns and type coercion."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from datamend.cleaning.shared import (
    CleaningOperation,
    CleaningResult,
    Dataset,
    canonical_choice,
    copy_rows,
    has_column,
    map_column,
)
from datamend.config import Settings
from datamend.normalizer import is_empty, strip_invisible, to_text
from datamend.parsing import as_number, parse_date, parse_numeric_string, to_number, value_kind

logger = logging.getLogger(__name__)

CONVERT_ALIASES = {
    "numeric": "to_numeric",
    "number": "to_numeric",
    "to_number": "to_numeric",
    "convert_to_numeric": "to_numeric",
    "string": "to_string",
    "text": "to_string",
    "to_text": "to_string",
    "convert_to_string": "to_string",
}

TRUE_TOKENS = {"true", "yes", "y"}
FALSE_TOKENS = {"false", "no", "n"}
NULL_TOKENS = {"undefined"}

WORD_NUMBERS = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "twenty": 20, "thirty": 30, "forty": 40,
    "fifty": 50, "hundred": 100,
}


def _column_is_empty(rows: Dataset, column: str) -> bool:
    return all(is_empty(row.get(column)) for row in rows)


def remove_empty_column(rows: Dataset, op: CleaningOperation, settings: Settings) -> CleaningResult:
    """Drop ``op.column`` if it is fully empty, or every fully-empty column when no column is named."""
    if not rows:
        return CleaningResult([], applied=False)
    if op.column is not None:
        if not has_column(rows, op.column):
            logger.warning("Column %r not found; nothing removed", op.column)
            return CleaningResult(copy_rows(rows), applied=False)
        targets = [op.column] if _column_is_empty(rows, op.column) else []
    else:
        targets = [c for c in rows[0] if _column_is_empty(rows, c)]

    if not targets:
        return CleaningResult(copy_rows(rows), applied=False)
    logger.debug("Removing empty columns: %s", ", ".join(targets))
    dropped = set(targets)
    return CleaningResult([{k: v for k, v in row.items() if k not in dropped} for row in rows])


def convert_numeric_strings(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    choice = canonical_choice(op.choice or op.mode, CONVERT_ALIASES, "to_numeric")

    if choice == "to_string":
        def convert(value: Any) -> Any:
            if isinstance(value, (int, float)) and not isinstance(value, bool) and not is_empty(value):
                return to_text(value)
            return value
    else:
        def convert(value: Any) -> Any:
            if isinstance(value, str):
                number = parse_numeric_string(value)
                if number is not None:
                    return number
            return value

    return map_column(rows, op.column, convert)


def _as_boolean(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    text = strip_invisible(to_text(value)).lower()
    if text in TRUE_TOKENS or text == "1":
        return True
    if text in FALSE_TOKENS or text == "0":
        return False
    return None


def _as_number(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return int(value)
    number = to_number(value)
    if number is not None:
        return as_number(number)
    return WORD_NUMBERS.get(strip_invisible(to_text(value)).lower())


def fix_mixed_data_types(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    """
    Pull minority values toward the column's dominant type.

    Null-like tokens become None. In a numeric column booleans and number
    words become numbers; in a boolean column yes/no/1/0 become booleans; in
    a date column parseable values become ISO dates. Values with no lossless
    conversion are left alone.
    """
    values = [row.get(op.column) for row in rows]
    kinds = [value_kind(v, settings.dayfirst) for v in values if not is_empty(v)]
    if not kinds:
        return copy_rows(rows)
    dominant = Counter(kinds).most_common(1)[0][0]

    def convert(value: Any) -> Any:
        if isinstance(value, str) and (is_empty(value) or value.strip().lower() in NULL_TOKENS):
            return None
        if is_empty(value):
            return value
        if dominant == "number":
            number = _as_number(value)
            return value if number is None else number
        if dominant == "boolean":
            flag = _as_boolean(value)
            return value if flag is None else flag
        if dominant == "date":
            parsed = parse_date(value, settings.dayfirst)
            return value if parsed is None else parsed.isoformat()
        return value

    return map_column(rows, op.column, convert)
