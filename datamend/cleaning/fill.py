"""Missing-value imputation for a single column."""

from __future__ import annotations

import logging
import statistics
from typing import Any

from datamend.cleaning.shared import (
    CleaningOperation,
    Dataset,
    canonical_choice,
    column_values,
    most_frequent,
    trimmed,
    with_column,
)
from datamend.config import Settings
from datamend.normalizer import is_empty
from datamend.parsing import as_number, coerce_number, infer_column_type

logger = logging.getLogger(__name__)

FILL_STRATEGIES = ("mean", "median", "mode", "forward_backward", "leave_null", "interpolate")
NUMERIC_STRATEGIES = {"mean", "median", "interpolate"}

FILL_ALIASES = {
    "average": "mean",
    "most_frequent": "mode",
    "forward_backward_fill": "forward_backward",
    "forward_fill": "forward_backward",
    "backward_fill": "forward_backward",
    "ffill": "forward_backward",
    "bfill": "forward_backward",
    "leave_as_null": "leave_null",
    "leave_empty": "leave_null",
    "interpolation": "interpolate",
    "linear": "interpolate",
}


def _reparse(value: Any, column_type: str) -> Any:
    """Empty -> None; numbers re-parsed for numeric columns; text trimmed."""
    if is_empty(value):
        return None
    if column_type == "number":
        number = coerce_number(value)
        return as_number(number) if number is not None else trimmed(value)
    return trimmed(value)


def forward_backward(values: list[Any]) -> list[Any]:
    out = list(values)
    for i in range(1, len(out)):
        if out[i] is None and out[i - 1] is not None:
            out[i] = out[i - 1]
    for i in range(len(out) - 2, -1, -1):
        if out[i] is None and out[i + 1] is not None:
            out[i] = out[i + 1]
    return out


def interpolate(values: list[Any]) -> list[Any]:
    """Linear interpolation over numeric gaps; edge runs copy the nearest value."""
    numbers = [v if isinstance(v, (int, float)) and not isinstance(v, bool) else None for v in values]
    n = len(values)
    previous: list[int | None] = [None] * n
    following: list[int | None] = [None] * n
    last = None
    for i in range(n):
        if numbers[i] is not None:
            last = i
        previous[i] = last
    last = None
    for i in range(n - 1, -1, -1):
        if numbers[i] is not None:
            last = i
        following[i] = last

    out: list[Any] = list(values)
    for i, value in enumerate(values):
        if value is not None:
            continue
        left, right = previous[i], following[i]
        if left is None and right is None:
            continue
        if left is not None and right is not None:
            step = (numbers[right] - numbers[left]) / (right - left)
            filled = numbers[left] + step * (i - left)
        else:
            filled = numbers[left if left is not None else right]
        out[i] = as_number(round(float(filled), 6))
    return out


def _resolve_strategy(raw: Any, column_type: str) -> str:
    strategy = canonical_choice(raw, FILL_ALIASES, "mode")
    if strategy not in FILL_STRATEGIES:
        fallback = {"number": "median", "date": "forward_backward"}.get(column_type, "mode")
        logger.warning("Unknown fill strategy %r; using %s", raw, fallback)
        return fallback
    if strategy in NUMERIC_STRATEGIES and column_type != "number":
        fallback = "forward_backward" if column_type == "date" else "mode"
        logger.info("Fill strategy %s needs a numeric column; using %s", strategy, fallback)
        return fallback
    return strategy


def fill_missing(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    values = column_values(rows, op.column)
    column_type = infer_column_type(values)
    strategy = _resolve_strategy(op.mode, column_type)
    parsed = [_reparse(v, column_type) for v in values]

    if strategy == "leave_null":
        return with_column(rows, op.column, parsed)

    if strategy == "forward_backward":
        return with_column(rows, op.column, forward_backward(parsed))

    if strategy == "interpolate":
        return with_column(rows, op.column, interpolate(parsed))

    if strategy == "mode":
        fill_value = most_frequent(parsed)
    else:
        numbers = [v for v in parsed if isinstance(v, (int, float)) and not isinstance(v, bool)]
        if not numbers:
            return with_column(rows, op.column, parsed)
        stat = statistics.fmean(numbers) if strategy == "mean" else statistics.median(numbers)
        fill_value = as_number(round(float(stat), 2))

    return with_column(rows, op.column, [fill_value if v is None else v for v in parsed])
