"""
Record linkage runner.

Rows of dataset A are split into fixed-size batches. Each batch is scored
independently against the blocking index of dataset B, so batches can run on
a thread or process pool; results are merged back in batch order. The host
may cancel between batch windows.
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable

from datamend.config import DEFAULT_SETTINGS, Settings
from datamend.errors import LinkageCancelled
from datamend.linkage.blocking import BlockingIndex
from datamend.linkage.classifier import MatchResult, classify, compare_rows, thresholds_for
from datamend.linkage.similarity import MODES, FieldSpec, build_field_specs

logger = logging.getLogger(__name__)

Dataset = list[dict[str, Any]]


@dataclass
class LinkageResult:
    mode: str
    exact: list[MatchResult]
    possible: list[MatchResult]
    unmatched: list[MatchResult]
    thresholds: dict[str, float]
    summary: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "thresholds": dict(self.thresholds),
            "summary": dict(self.summary),
            "exact": [m.to_dict() for m in self.exact],
            "possible": [m.to_dict() for m in self.possible],
            "unmatched": [m.to_dict() for m in self.unmatched],
        }


@dataclass
class BatchJob:
    start: int
    rows_a: Dataset
    dataset_b: Dataset
    fields: list[FieldSpec]
    index: BlockingIndex
    mode: str


def score_batch(job: BatchJob) -> tuple[list[MatchResult], int]:
    """Best B candidate per A row in the batch, plus the number of pairs scored."""
    results = []
    scored = 0
    for offset, row_a in enumerate(job.rows_a):
        best = MatchResult(a_index=job.start + offset, row_a=row_a)
        for b_index in job.index.candidates(row_a):
            row_b = job.dataset_b[b_index]
            outcome = compare_rows(row_a, row_b, job.fields, job.mode)
            if outcome is None:
                continue
            scored += 1
            similarity, vector = outcome
            # strictly greater: the first candidate seen wins ties
            if best.row_b is None or similarity > best.similarity:
                best.b_index, best.row_b = b_index, row_b
                best.similarity, best.comp_vector = similarity, vector
        results.append(best)
    return results, scored


def resolve_mode(mode: str | None) -> str:
    value = (mode or "basic").strip().lower()
    if value not in MODES:
        logger.warning("Unknown linkage mode %r; falling back to basic", mode)
        return "basic"
    return value


def link(
    dataset_a: Dataset,
    dataset_b: Dataset,
    mapping: dict[str, str],
    mode: str = "basic",
    settings: Settings | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> LinkageResult:
    """
    Match every row of ``dataset_a`` to its best row in ``dataset_b``.

    ``mapping`` pairs A column names with B column names. Each A row lands in
    exactly one of exact / possible / unmatched. ``should_cancel`` is polled
    before every batch window; a True answer raises LinkageCancelled carrying
    the rows scored so far.
    """
    settings = settings or DEFAULT_SETTINGS
    mode = resolve_mode(mode)
    fields = build_field_specs(dict(mapping or {}))
    if not fields:
        logger.warning("Empty field mapping; every row of dataset A is unmatched")

    index = BlockingIndex(dataset_b, fields, settings.fallback_cap)
    size = settings.batch_size
    jobs = [
        BatchJob(start, dataset_a[start:start + size], dataset_b, fields, index, mode)
        for start in range(0, len(dataset_a), size)
    ]
    workers = max(1, settings.max_workers)
    pool_cls = ProcessPoolExecutor if settings.executor == "process" else ThreadPoolExecutor

    completed: list[MatchResult] = []
    pairs_scored = 0
    with pool_cls(max_workers=workers) as pool:
        for window_start in range(0, len(jobs), workers):
            if should_cancel is not None and should_cancel():
                logger.info("Linkage cancelled at batch %d/%d", window_start, len(jobs))
                classify(completed, mode)
                raise LinkageCancelled(completed, window_start, len(jobs), pairs_scored)
            window = jobs[window_start:window_start + workers]
            for results, scored in pool.map(score_batch, window):
                completed.extend(results)
                pairs_scored += scored
            logger.debug("Scored %d/%d batches", min(window_start + workers, len(jobs)), len(jobs))

    return build_result(completed, len(dataset_a), len(dataset_b), mode, pairs_scored)


def build_result(completed: list[MatchResult], size_a: int, size_b: int, mode: str, pairs_scored: int) -> LinkageResult:
    """Classify scored rows and assemble the result with its summary counts."""
    buckets = classify(completed, mode)
    summary = {
        "file_a": size_a,
        "file_b": size_b,
        "exact": len(buckets["exact"]),
        "possible": len(buckets["possible"]),
        "unmatched": len(buckets["unmatched"]),
        "pairs_scored": pairs_scored,
    }
    return LinkageResult(
        mode=mode,
        exact=buckets["exact"],
        possible=buckets["possible"],
        unmatched=buckets["unmatched"],
        thresholds=dict(thresholds_for(mode)),
        summary=summary,
    )
