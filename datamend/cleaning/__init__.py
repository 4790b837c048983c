"""
Cleaning operations.

``apply_operation(dataset, operation)`` runs exactly one operation and returns
a CleaningResult with a fresh list of rows; the input is never modified. An
unknown operation type or a column that does not exist is a logged no-op.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from datamend.cleaning.columns import convert_numeric_strings, fix_mixed_data_types, remove_empty_column
from datamend.cleaning.duplicates import handle_duplicates
from datamend.cleaning.fill import fill_missing
from datamend.cleaning.outliers import handle_outliers
from datamend.cleaning.shared import (
    CleaningOperation,
    CleaningResult,
    Dataset,
    choice_key,
    copy_rows,
    has_column,
)
from datamend.cleaning.standardize import (
    standardize_dates,
    standardize_emails,
    standardize_headers,
    standardize_phones,
)
from datamend.cleaning.text import (
    fix_capitalization_inconsistency,
    fix_corrupted_encoding,
    fix_typos_and_mislabels,
    normalize_case,
    normalize_categories,
    remove_invisible_whitespace,
)
from datamend.config import DEFAULT_SETTINGS, Settings

logger = logging.getLogger(__name__)

Handler = Callable[[Dataset, CleaningOperation, Settings], "Dataset | CleaningResult"]

OPERATIONS: dict[str, Handler] = {
    "fill_missing": fill_missing,
    "handle_duplicates": handle_duplicates,
    "handle_outliers": handle_outliers,
    "standardize_dates": standardize_dates,
    "standardize_phones": standardize_phones,
    "standardize_emails": standardize_emails,
    "standardize_headers": standardize_headers,
    "remove_empty_column": remove_empty_column,
    "normalize_case": normalize_case,
    "normalize_categories": normalize_categories,
    "fix_capitalization_inconsistency": fix_capitalization_inconsistency,
    "fix_typos_and_mislabels": fix_typos_and_mislabels,
    "fix_mixed_data_types": fix_mixed_data_types,
    "convert_numeric_strings": convert_numeric_strings,
    "remove_invisible_whitespace": remove_invisible_whitespace,
    "fix_corrupted_encoding": fix_corrupted_encoding,
}

# operations that may run without a target column
DATASET_WIDE = {"standardize_headers", "remove_empty_column"}

OPERATION_ALIASES = {
    "remove_empty_columns": "remove_empty_column",
    "remove_duplicates": "handle_duplicates",
    "convert_numeric_string": "convert_numeric_strings",
    "normalize_category": "normalize_categories",
    "fix_capitalization": "fix_capitalization_inconsistency",
    "fix_typos": "fix_typos_and_mislabels",
    "fix_mixed_types": "fix_mixed_data_types",
    "remove_whitespace": "remove_invisible_whitespace",
    "fix_encoding": "fix_corrupted_encoding",
}

__all__ = [
    "OPERATIONS",
    "CleaningOperation",
    "CleaningResult",
    "apply",
    "apply_operation",
    "as_operation",
]


def as_operation(operation: "CleaningOperation | Mapping[str, Any]") -> CleaningOperation:
    if isinstance(operation, CleaningOperation):
        return operation
    return CleaningOperation.from_dict(operation)


def apply_operation(
    dataset: Dataset,
    operation: "CleaningOperation | Mapping[str, Any]",
    settings: Settings | None = None,
) -> CleaningResult:
    settings = settings or DEFAULT_SETTINGS
    op = as_operation(operation)
    op_type = OPERATION_ALIASES.get(op.type, choice_key(op.type))
    handler = OPERATIONS.get(op_type)

    if handler is None:
        logger.warning("Unknown cleaning operation %r; leaving data unchanged", op.type)
        return CleaningResult(copy_rows(dataset), applied=False)
    if op_type not in DATASET_WIDE and not has_column(dataset, op.column):
        logger.warning("%s: column %r not found; leaving data unchanged", op_type, op.column)
        return CleaningResult(copy_rows(dataset), applied=False)

    logger.debug("Applying %s to %r", op_type, op.column)
    outcome = handler(dataset, op, settings)
    if isinstance(outcome, CleaningResult):
        return outcome
    return CleaningResult(outcome)


def apply(
    dataset: Dataset,
    operation: "CleaningOperation | Mapping[str, Any]",
    settings: Settings | None = None,
) -> Dataset:
    """Shorthand for ``apply_operation(...).rows``."""
    return apply_operation(dataset, operation, settings).rows
