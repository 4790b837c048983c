from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from datamend.linkage.similarity import FieldSpec, field_score
from datamend.normalizer import is_empty

THRESHOLDS = {
    "strict": {"exact": 0.95, "possible": 0.85},
    "advanced": {"exact": 0.90, "possible": 0.75},
    "basic": {"exact": 0.90, "possible": 0.75},
}

BUCKETS = ("exact", "possible", "unmatched")


@dataclass
class MatchResult:
    a_index: int
    row_a: dict[str, Any]
    b_index: int | None = None
    row_b: dict[str, Any] | None = None
    similarity: float = 0.0
    comp_vector: dict[str, float] = field(default_factory=dict)
    match_type: str = "unmatched"

    def to_dict(self) -> dict[str, Any]:
        return {
            "a_index": self.a_index,
            "b_index": self.b_index,
            "row_a": self.row_a,
            "row_b": self.row_b,
            "similarity": round(self.similarity, 6),
            "comp_vector": {k: round(v, 6) for k, v in self.comp_vector.items()},
            "match_type": self.match_type,
        }


def compare_rows(
    row_a: dict[str, Any],
    row_b: dict[str, Any],
    fields: list[FieldSpec],
    mode: str,
) -> tuple[float, dict[str, float]] | None:
    """
    Weighted mean of field scores over fields where at least one side has a
    value. A one-sided field scores 0 but still counts. Returns None when no
    field is evaluable.
    """
    total = 0.0
    weights = 0.0
    vector: dict[str, float] = {}
    for spec in fields:
        value_a, value_b = row_a.get(spec.column_a), row_b.get(spec.column_b)
        if is_empty(value_a) and is_empty(value_b):
            continue
        score = field_score(spec.kind, value_a, value_b, mode)
        vector[spec.column_a] = score
        total += score * spec.weight
        weights += spec.weight
    if weights == 0:
        return None
    return total / weights, vector


def thresholds_for(mode: str) -> dict[str, float]:
    return THRESHOLDS.get(mode, THRESHOLDS["basic"])


def bucket_for(similarity: float, has_candidate: bool, mode: str) -> str:
    limits = thresholds_for(mode)
    if not has_candidate or similarity < limits["possible"]:
        return "unmatched"
    if similarity >= limits["exact"]:
        return "exact"
    return "possible"


def classify(results: Iterable[MatchResult], mode: str) -> dict[str, list[MatchResult]]:
    """Split best-match results into exact / possible / unmatched; every A row lands in exactly one."""
    buckets: dict[str, list[MatchResult]] = {name: [] for name in BUCKETS}
    for result in results:
        bucket = bucket_for(result.similarity, result.row_b is not None, mode)
        if bucket == "unmatched":
            result.b_index = None
            result.row_b = None
        result.match_type = bucket
        buckets[bucket].append(result)
    return buckets
