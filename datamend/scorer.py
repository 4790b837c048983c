from __future__ import annotations

import math
from typing import Any, Iterable

from datamend.detector import Dataset, dataset_columns
from datamend.issue_taxonomy import Issue


def score(dataset: Dataset, issues: Iterable[Issue]) -> int:
    """
    Quality score 0-100.

    Each issue weighs ``count`` (doubled for errors) against twice the number
    of cells. An empty dataset scores 0.
    """
    total_cells = len(dataset) * len(dataset_columns(dataset))
    if total_cells == 0:
        return 0
    affected = sum(issue.count * (2 if issue.severity == "error" else 1) for issue in issues)
    ratio = affected / (total_cells * 2)
    # half-up rounding, so 99.5 scores 100
    return int(math.floor(max(0.0, min(100.0, (1 - ratio) * 100)) + 0.5))


def cleaning_progress(issues_before: list[Issue], issues_after: list[Issue]) -> dict[str, Any]:
    total = len(issues_before)
    fixed = max(0, total - len(issues_after))
    return {
        "fixed": fixed,
        "total": total,
        "display": f"{fixed}/{total}",
        "progress": fixed / total if total else 1.0,
    }
