"""
Text repairs: casing, categorical label canonicalization, typo snapping,
invisible characters and mojibake.
"""

from __future__ import annotations

import re
import unicodedata
from collections import Counter
from typing import Any, Callable

from datamend.cleaning.shared import CleaningOperation, Dataset, canonical_choice, map_column
from datamend.config import Settings
from datamend.detector import is_category_variant, is_typo_pair
from datamend.normalizer import MOJIBAKE_RE, ZERO_WIDTH_RE, is_empty, strip_invisible
from datamend.parsing import value_kind
from datamend.vocabulary import CATEGORY_LOOKUP, best_match, canonical_label, keyify, vocabulary_for

CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
LINE_BREAK_RE = re.compile(r"[\t\r\n]+")
WORD_START_RE = re.compile(r"\b\w")

CASE_ALIASES = {"lowercase": "lower", "uppercase": "upper", "title_case": "title", "proper": "title"}

MOJIBAKE_MAP = {
    "\u00c3\u00a9": "\u00e9",
    "\u00c3\u00a8": "\u00e8",
    "\u00c3\u00a2": "\u00e2",
    "\u00c3\u00aa": "\u00ea",
    "\u00c3\u00bc": "\u00fc",
    "\u00c3\u00b6": "\u00f6",
    "\u00c3\u00a4": "\u00e4",
    "\u00c3\u00a7": "\u00e7",
    "\u00c3\u00b1": "\u00f1",
    "\u00e2\u20ac\u2122": "\u2019",
    "\u00e2\u20ac\u02dc": "\u2018",
    "\u00e2\u20ac\u0153": '"',
    "\u00e2\u20ac\u009d": '"',
    "\u00e2\u20ac\u201c": "\u2013",
    "\u00e2\u20ac\u201d": "\u2014",
    "\u00e2\u20ac\u00a2": "\u2022",
    "\u00e2\u20ac\u00a6": "\u2026",
    "\u00c2\u00a0": " ",
    "\u00ef\u00bf\u00bd": "",
    "\ufffd": "",
}


def _labels(values: list[Any], dayfirst: bool) -> list[str]:
    return [
        strip_invisible(v)
        for v in values
        if isinstance(v, str) and not is_empty(v) and value_kind(v, dayfirst) == "string"
    ]


def _remap_labels(rows: Dataset, column: str, mapping: dict[str, str]) -> Dataset:
    """Replace string cells whose trimmed lower-case form is a key of ``mapping``."""

    def remap(value: Any) -> Any:
        if not isinstance(value, str) or is_empty(value):
            return value
        return mapping.get(strip_invisible(value).lower(), value)

    return map_column(rows, column, remap)


def cluster_labels(labels: list[str], linked: Callable[[str, str], bool]) -> dict[str, str]:
    """
    Group labels whose lower-case forms are ``linked`` and pick one spelling
    per group: a known canonical label if the group has one, otherwise the
    most frequent spelling (first seen on ties). Groups never merge two
    different known labels.
    """
    counts = Counter(labels)
    distinct = list(dict.fromkeys(label.lower() for label in labels))
    parent = {label: label for label in distinct}
    canon = {label: canonical_label(label) for label in distinct}

    def find(label: str) -> str:
        while parent[label] != label:
            parent[label] = parent[parent[label]]
            label = parent[label]
        return label

    for i, a in enumerate(distinct):
        for b in distinct[i + 1:]:
            root_a, root_b = find(a), find(b)
            if root_a == root_b or not linked(a, b):
                continue
            if canon[root_a] and canon[root_b] and canon[root_a] != canon[root_b]:
                continue
            parent[root_b] = root_a
            canon[root_a] = canon[root_a] or canon[root_b]

    spellings: dict[str, list[str]] = {}
    for label in counts:
        spellings.setdefault(find(label.lower()), []).append(label)

    mapping: dict[str, str] = {}
    for root, members in spellings.items():
        if len({m.lower() for m in members}) < 2 and canon[root] is None:
            continue
        representative = canon[root] or max(members, key=lambda m: counts[m])
        for member in members:
            mapping[member.lower()] = representative
    return mapping


# ══════════════════════════════════════════════════════════════════════════
# OPERATIONS
# ══════════════════════════════════════════════════════════════════════════

def normalize_case(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    method = canonical_choice(op.method or op.strategy, CASE_ALIASES, "lower")

    def convert(value: Any) -> Any:
        if not isinstance(value, str):
            return value
        if method == "upper":
            return value.upper()
        if method == "title":
            return WORD_START_RE.sub(lambda m: m.group(0).upper(), value.lower())
        return value.lower()

    return map_column(rows, op.column, convert)


def fix_capitalization_inconsistency(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    labels = _labels([row.get(op.column) for row in rows], settings.dayfirst)
    counts = Counter(labels)
    mapping: dict[str, str] = {}
    for label in counts:
        key = label.lower()
        current = mapping.get(key)
        if current is None or counts[label] > counts[current]:
            mapping[key] = label
    return _remap_labels(rows, op.column, mapping)


def normalize_categories(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    def lookup(value: Any) -> Any:
        if not isinstance(value, str) or is_empty(value):
            return value
        return CATEGORY_LOOKUP.get(keyify(value), value)

    looked_up = map_column(rows, op.column, lookup)
    labels = _labels([row.get(op.column) for row in looked_up], settings.dayfirst)
    return _remap_labels(looked_up, op.column, cluster_labels(labels, is_category_variant))


def fix_typos_and_mislabels(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    """Snap values to a known vocabulary for gender/country columns, then merge near-identical labels."""
    vocabulary, aliases = vocabulary_for(op.column)

    def snap(value: Any) -> Any:
        if not isinstance(value, str) or is_empty(value):
            return value
        key = keyify(value)
        if key in aliases:
            return aliases[key]
        match = best_match(value, vocabulary, settings.typo_max_ratio)
        return match if match is not None else strip_invisible(value)

    snapped = map_column(rows, op.column, snap) if vocabulary else rows
    labels = _labels([row.get(op.column) for row in snapped], settings.dayfirst)
    mapping = cluster_labels(labels, lambda a, b: is_typo_pair(a, b, settings))
    return _remap_labels(snapped, op.column, mapping)


def clean_invisible(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = ZERO_WIDTH_RE.sub("", value)
    text = LINE_BREAK_RE.sub(" ", text)
    text = CONTROL_RE.sub("", text)
    return strip_invisible(text)


def remove_invisible_whitespace(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    return map_column(rows, op.column, clean_invisible)


def repair_mojibake(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = unicodedata.normalize("NFC", value)
    if MOJIBAKE_RE.search(text):
        for codec in ("cp1252", "latin-1"):
            try:
                text = text.encode(codec).decode("utf-8")
                break
            except UnicodeError:
                continue
    for broken, intended in MOJIBAKE_MAP.items():
        text = text.replace(broken, intended)
    text = CONTROL_RE.sub("", text)
    return text.strip()


def fix_corrupted_encoding(rows: Dataset, op: CleaningOperation, settings: Settings) -> Dataset:
    return map_column(rows, op.column, repair_mojibake)
