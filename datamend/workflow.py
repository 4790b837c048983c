"""
High-level datamend runs: diagnose a dataset, clean it with a list of
operations, and suggest the operations that would fix what was found.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping

from datamend.cleaning import CleaningOperation, apply_operation, as_operation
from datamend.config import DEFAULT_SETTINGS, Settings
from datamend.detector import Dataset, dataset_columns, detect
from datamend.issue_taxonomy import Issue, Rename, compose_renames, remap_issue_columns, summarize_issues
from datamend.parsing import infer_column_type, numeric_values, quartiles
from datamend.scorer import cleaning_progress, score
from datamend.vocabulary import vocabulary_for

logger = logging.getLogger(__name__)

SKEW_RATIO = 2.0

# row-dropping fixes only run when asked for explicitly
MANUAL_ONLY = {"handle_duplicates"}
# label-merging fixes are only suggested where a known vocabulary anchors them
VOCABULARY_ONLY = {"fix_typos_and_mislabels", "normalize_categories"}


def diagnose(dataset: Dataset, settings: Settings | None = None) -> dict[str, Any]:
    settings = settings or DEFAULT_SETTINGS
    issues = detect(dataset, settings)
    return {
        "rows": len(dataset),
        "columns": dataset_columns(dataset),
        "issues": issues,
        "quality_score": score(dataset, issues),
    }


@dataclass
class CleanRun:
    rows: Dataset
    operations: list[CleaningOperation]
    issues_before: list[Issue]
    issues_after: list[Issue]
    score_before: int
    score_after: int
    renames: list[Rename] = field(default_factory=list)
    skipped: list[CleaningOperation] = field(default_factory=list)

    @property
    def resolved_before(self) -> list[Issue]:
        """Issues found before cleaning, expressed in the final column names."""
        return remap_issue_columns(self.issues_before, self.renames)

    @property
    def progress(self) -> dict[str, Any]:
        return cleaning_progress(self.issues_before, self.issues_after)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": len(self.rows),
            "operations": [op.to_dict() for op in self.operations],
            "skipped": [op.to_dict() for op in self.skipped],
            "renames": [{"old": r.old, "new": r.new} for r in self.renames],
            "score_before": self.score_before,
            "score_after": self.score_after,
            "issues_before": [issue.to_dict() for issue in self.resolved_before],
            "issues_after": [issue.to_dict() for issue in self.issues_after],
            "severity_before": summarize_issues(self.issues_before),
            "severity_after": summarize_issues(self.issues_after),
            "progress": self.progress,
        }


def clean(
    dataset: Dataset,
    operations: Iterable["CleaningOperation | Mapping[str, Any]"],
    settings: Settings | None = None,
) -> CleanRun:
    """
    Apply ``operations`` in order and re-diagnose the result.

    An operation naming a column that an earlier header pass renamed is
    redirected to the new name.
    """
    settings = settings or DEFAULT_SETTINGS
    issues_before = detect(dataset, settings)
    rows = dataset
    renames: list[Rename] = []
    applied: list[CleaningOperation] = []
    skipped: list[CleaningOperation] = []

    for raw in operations:
        op = as_operation(raw)
        current = {r.old: r.new for r in renames}
        if op.column in current:
            op = replace(op, column=current[op.column])
        result = apply_operation(rows, op, settings)
        rows = result.rows
        if not result.applied:
            skipped.append(op)
            continue
        applied.append(op)
        if result.renames:
            renames = compose_renames(renames, result.renames)

    if not applied and rows is dataset:
        rows = [dict(row) for row in dataset]

    issues_after = detect(rows, settings)
    logger.info("Cleaned %d rows with %d operations (%d skipped)", len(rows), len(applied), len(skipped))
    return CleanRun(
        rows=rows,
        operations=applied,
        issues_before=issues_before,
        issues_after=issues_after,
        score_before=score(dataset, issues_before),
        score_after=score(rows, issues_after),
        renames=renames,
        skipped=skipped,
    )


def suggest_fill_strategy(values: list[Any]) -> str:
    column_type = infer_column_type(values)
    if column_type == "number":
        numbers = numeric_values(values)
        if len(numbers) < 5:
            return "median"
        q1, q3 = quartiles(numbers)
        skewed = abs((q3 - q1) / (q1 or 1)) > SKEW_RATIO
        return "median" if skewed else "mean"
    if column_type == "date":
        return "forward_backward"
    return "mode"


def suggest_operations(dataset: Dataset, issues: Iterable[Issue]) -> list[CleaningOperation]:
    """
    One recommended operation per fixable issue; header fixes run last.

    Duplicate removal is left to explicit operations, and typo or category
    merging is only suggested for columns with a known vocabulary (gender,
    country).
    """
    suggestions: list[CleaningOperation] = []
    header_ops: list[CleaningOperation] = []
    seen: set[tuple[str, str | None]] = set()
    for issue in issues:
        op_type = issue.fix
        if op_type is None or op_type in MANUAL_ONLY:
            continue
        if op_type in VOCABULARY_ONLY and not vocabulary_for(issue.column)[0]:
            continue
        column = None if op_type in ("standardize_headers", "remove_empty_column") else issue.column
        key = (op_type, column)
        if key in seen:
            continue
        seen.add(key)
        strategy = None
        if op_type == "fill_missing":
            strategy = suggest_fill_strategy([row.get(issue.column) for row in dataset])
        op = CleaningOperation(type=op_type, column=column, strategy=strategy)
        (header_ops if column is None else suggestions).append(op)
    return suggestions + header_ops
