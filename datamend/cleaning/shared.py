from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from datamend.errors import OperationError
from datamend.issue_taxonomy import Rename, renames_from_map
from datamend.normalizer import is_empty, strip_invisible, to_text

Dataset = list[dict[str, Any]]

CHOICE_KEY_RE = re.compile(r"[^a-z0-9]+")


def choice_key(raw: Any) -> str:
    """UI labels and API values share one spelling: "Keep First" -> "keep_first"."""
    return CHOICE_KEY_RE.sub("_", str(raw).strip().lower()).strip("_")


def canonical_choice(raw: Any, aliases: Mapping[str, str], default: str) -> str:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    key = choice_key(raw)
    return aliases.get(key, key)


@dataclass(frozen=True)
class CleaningOperation:
    type: str
    column: str | None = None
    strategy: str | None = None
    method: str | None = None
    choice: str | None = None
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Any) -> "CleaningOperation":
        if not isinstance(payload, Mapping):
            raise OperationError(f"Cleaning operation must be an object, got {type(payload).__name__}")
        op_type = payload.get("type")
        if not op_type or not isinstance(op_type, str):
            raise OperationError("Cleaning operation is missing its 'type'")
        options = payload.get("options") or {}
        if not isinstance(options, Mapping):
            raise OperationError("Cleaning operation 'options' must be an object")
        column = payload.get("column")
        return cls(
            type=choice_key(op_type),
            column=None if column is None else str(column),
            strategy=payload.get("strategy"),
            method=payload.get("method"),
            choice=payload.get("choice"),
            options=dict(options),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type}
        for key in ("column", "strategy", "method", "choice"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.options:
            payload["options"] = dict(self.options)
        return payload

    @property
    def mode(self) -> str | None:
        """``strategy`` with ``method`` accepted as a synonym."""
        return self.strategy if self.strategy is not None else self.method


@dataclass
class CleaningResult:
    rows: Dataset
    header_map: dict[str, str] | None = None
    applied: bool = True

    @property
    def renames(self) -> list[Rename]:
        return renames_from_map(self.header_map or {})


def copy_rows(rows: Dataset) -> Dataset:
    return [dict(row) for row in rows]


def has_column(rows: Dataset, column: str | None) -> bool:
    return bool(rows) and column is not None and column in rows[0]


def column_values(rows: Dataset, column: str) -> list[Any]:
    return [row.get(column) for row in rows]


def with_column(rows: Dataset, column: str, values: list[Any]) -> Dataset:
    return [{**row, column: value} for row, value in zip(rows, values)]


def map_column(rows: Dataset, column: str, fn: Callable[[Any], Any]) -> Dataset:
    return [{**row, column: fn(row.get(column))} for row in rows]


def trimmed(value: Any) -> Any:
    if isinstance(value, str):
        return strip_invisible(value)
    return value


def most_frequent(values: list[Any]) -> Any:
    """Most common non-empty value by trimmed text; ties go to the first seen."""
    counts: Counter[str] = Counter()
    first: dict[str, Any] = {}
    for value in values:
        if is_empty(value):
            continue
        key = strip_invisible(to_text(value))
        counts[key] += 1
        first.setdefault(key, trimmed(value))
    if not counts:
        return None
    best = max(counts.values())
    for key, value in first.items():
        if counts[key] == best:
            return value
    return None
