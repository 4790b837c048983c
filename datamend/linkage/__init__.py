"""Record linkage: blocking, field similarity, batched matching and match classification."""

from datamend.linkage.blocking import BlockingIndex, block
from datamend.linkage.classifier import THRESHOLDS, MatchResult, classify, compare_rows
from datamend.linkage.matcher import LinkageResult, link
from datamend.linkage.similarity import MODES, column_score, field_kind, field_score

__all__ = [
    "MODES",
    "THRESHOLDS",
    "BlockingIndex",
    "LinkageResult",
    "MatchResult",
    "block",
    "classify",
    "column_score",
    "compare_rows",
    "field_kind",
    "field_score",
    "link",
]
