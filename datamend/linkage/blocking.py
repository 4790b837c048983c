"""
Candidate blocking.

Dataset B is indexed once by the first character of each token-sorted name
value and by each email domain. A row from A is compared only with the B rows
sharing one of its buckets; with no name or email signal it falls back to a
capped prefix of B.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterator

from datamend.linkage.similarity import FieldSpec, build_field_specs
from datamend.normalizer import extract_domain, token_sort

Dataset = list[dict[str, Any]]


def name_key(value: Any) -> str:
    sorted_tokens = token_sort(value)
    return sorted_tokens[0] if sorted_tokens else ""


class BlockingIndex:
    def __init__(self, dataset_b: Dataset, fields: list[FieldSpec], fallback_cap: int = 2000) -> None:
        self.size = len(dataset_b)
        self.fallback_cap = fallback_cap
        self.name_fields = [f for f in fields if f.kind == "name"]
        self.email_fields = [f for f in fields if f.kind == "email"]
        self.name_buckets: dict[tuple[str, str], list[int]] = defaultdict(list)
        self.email_buckets: dict[tuple[str, str], list[int]] = defaultdict(list)

        for index, row in enumerate(dataset_b):
            for spec in self.name_fields:
                key = name_key(row.get(spec.column_b))
                if key:
                    self.name_buckets[(spec.column_b, key)].append(index)
            for spec in self.email_fields:
                domain = extract_domain(row.get(spec.column_b))
                if domain:
                    self.email_buckets[(spec.column_b, domain)].append(index)

    def candidates(self, row_a: dict[str, Any]) -> list[int]:
        """B row indices to compare with ``row_a``, ascending."""
        found: set[int] = set()
        for spec in self.name_fields:
            key = name_key(row_a.get(spec.column_a))
            if key:
                found.update(self.name_buckets.get((spec.column_b, key), ()))
        for spec in self.email_fields:
            domain = extract_domain(row_a.get(spec.column_a))
            if domain:
                found.update(self.email_buckets.get((spec.column_b, domain), ()))
        if not found:
            return list(range(min(self.size, self.fallback_cap)))
        return sorted(found)


def block(
    dataset_a: Dataset,
    dataset_b: Dataset,
    mapping: dict[str, str],
    fallback_cap: int = 2000,
) -> Iterator[tuple[int, int]]:
    """Yield ``(a_index, b_index)`` candidate pairs in A order, then B order."""
    index = BlockingIndex(dataset_b, build_field_specs(mapping), fallback_cap)
    for a_index, row in enumerate(dataset_a):
        for b_index in index.candidates(row):
            yield a_index, b_index
