"""IQR-fenced outlier handling for one numeric column."""

from __future__ import annotations

import logging
import statistics
from typing import Any

from datamend.cleaning.shared import CleaningOperation, Dataset, canonical_choice, copy_rows
from datamend.config import Settings
from datamend.parsing import as_number, iqr_fences, numeric_values, to_number

logger = logging.getLogger(__name__)

OUTLIER_ALIASES = {
    "cap": "cap_at_threshold",
    "clip": "cap_at_threshold",
    "winsorize": "cap_at_threshold",
    "mean": "replace_with_mean",
    "replace": "replace_with_mean",
    "remove_outliers": "remove",
    "drop": "remove",
}


def _explicit_cap(options: dict[str, Any], key: str) -> float | None:
    threshold = options.get("threshold") or {}
    value = threshold.get(key) if isinstance(threshold, dict) else None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def handle_outliers(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    column = op.column
    numbers = numeric_values([row.get(column) for row in rows])
    if len(numbers) < settings.outlier_min_values:
        logger.info("Column %r has %d numeric values; too few for outlier fences", column, len(numbers))
        return copy_rows(rows)

    strategy = canonical_choice(op.mode, OUTLIER_ALIASES, "replace_with_mean")
    low, high = iqr_fences(numbers, settings.iqr_multiplier)

    def outside(value: Any) -> bool:
        number = to_number(value)
        return number is not None and (number < low or number > high)

    if strategy == "remove":
        return copy_rows([row for row in rows if not outside(row.get(column))])

    if strategy == "cap_at_threshold":
        low_cap = _explicit_cap(op.options, "low")
        high_cap = _explicit_cap(op.options, "high")
        low_cap = low if low_cap is None else low_cap
        high_cap = high if high_cap is None else high_cap

        def cap(value: Any) -> Any:
            number = to_number(value)
            if number is None:
                return value
            if number < low_cap:
                return as_number(low_cap)
            if number > high_cap:
                return as_number(high_cap)
            return value

        return [{**row, column: cap(row.get(column))} for row in rows]

    if strategy != "replace_with_mean":
        logger.warning("Unknown outlier strategy %r; replacing with the mean", op.mode)
    inside = [n for n in numbers if low <= n <= high]
    mean = as_number(round(statistics.fmean(inside), 6)) if inside else 0
    return [
        {**row, column: mean if outside(row.get(column)) else row.get(column)}
        for row in rows
    ]
