"""Column-scoped duplicate removal. Rows with an empty key are always kept."""

from __future__ import annotations

from collections import Counter

from datamend.cleaning.shared import CleaningOperation, Dataset, canonical_choice, copy_rows
from datamend.config import Settings
from datamend.normalizer import duplicate_key

DUPLICATE_ALIASES = {
    "first": "keep_first",
    "remove_duplicates": "keep_first",
    "drop_duplicates": "keep_first",
    "last": "keep_last",
    "keep_latest": "keep_last",
    "drop_all": "remove_all",
    "remove": "remove_all",
}


def handle_duplicates(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    strategy = canonical_choice(op.mode, DUPLICATE_ALIASES, "keep_first")
    keys = [duplicate_key(row.get(op.column)) for row in rows]

    if strategy == "remove_all":
        counts = Counter(k for k in keys if k)
        keep = [not k or counts[k] == 1 for k in keys]
    elif strategy == "keep_last":
        last_index = {k: i for i, k in enumerate(keys) if k}
        keep = [not k or last_index[k] == i for i, k in enumerate(keys)]
    else:
        seen: set[str] = set()
        keep = []
        for k in keys:
            keep.append(not k or k not in seen)
            if k:
                seen.add(k)

    return copy_rows([row for row, kept in zip(rows, keep) if kept])
