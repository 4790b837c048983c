"""
Issue detection.

Every column is profiled once and then run through an ordered table of
``(name, applies, check)`` rules. Each check looks at a single column and
returns at most one Issue; ``detect`` is the flattened fold over columns.
Nothing here mutates the dataset.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from functools import cached_property
from typing import Any, Callable

import jellyfish

from datamend.config import DEFAULT_SETTINGS, Settings
from datamend.issue_taxonomy import Issue, build_issue
from datamend.normalizer import (
    duplicate_key,
    has_mojibake,
    is_empty,
    name_tokens,
    strip_invisible,
)
from datamend.parsing import (
    INVALID_EMAIL,
    date_bucket,
    iqr_fences,
    is_numeric_string,
    is_valid_email,
    numeric_values,
    parse_date,
    phone_bucket,
    value_kind,
)
from datamend.vocabulary import distinct_known_labels

logger = logging.getLogger(__name__)

Dataset = list[dict[str, Any]]

HEADER_BAD_CHAR_RE = re.compile(r"[^A-Za-z0-9_]")

DATE_NAME_TOKENS = {"date", "time", "timestamp", "datetime", "dob", "birthday"}
PHONE_NAME_TOKENS = {"phone", "mobile", "tel", "telephone", "cell"}
IDENTIFIER_NAME_TOKENS = {"id", "uid", "uuid", "guid", "code", "zip", "postcode", "pin", "sku"}


def dataset_columns(dataset: Dataset) -> list[str]:
    if not dataset:
        return []
    return list(dataset[0].keys())


# ══════════════════════════════════════════════════════════════════════════
# COLUMN PROFILE
# ══════════════════════════════════════════════════════════════════════════

class ColumnProfile:
    """Lazily computed views of one column shared by all checks."""

    def __init__(self, name: str, values: list[Any], settings: Settings) -> None:
        self.name = name
        self.values = values
        self.settings = settings
        self.tokens = name_tokens(name)

    @cached_property
    def non_empty(self) -> list[Any]:
        return [v for v in self.values if not is_empty(v)]

    @cached_property
    def kinds(self) -> list[str]:
        return [value_kind(v, self.settings.dayfirst) for v in self.non_empty]

    @cached_property
    def labels(self) -> list[str]:
        """Trimmed free-text values: strings that are not numbers, booleans or dates."""
        return [
            strip_invisible(v)
            for v, kind in zip(self.non_empty, self.kinds)
            if isinstance(v, str) and kind == "string"
        ]

    @cached_property
    def distinct_labels(self) -> list[str]:
        return list(dict.fromkeys(label.lower() for label in self.labels))

    def has_token(self, keywords: set[str]) -> bool:
        return any(t in keywords for t in self.tokens)

    @property
    def is_date_like(self) -> bool:
        return self.has_token(DATE_NAME_TOKENS) or any(
            t.endswith("date") or t.endswith("time") for t in self.tokens
        )

    @property
    def is_phone_like(self) -> bool:
        return self.has_token(PHONE_NAME_TOKENS) or any("phone" in t for t in self.tokens)

    @property
    def is_email_like(self) -> bool:
        return any("email" in t for t in self.tokens) or "mail" in self.tokens

    @property
    def is_identifier_like(self) -> bool:
        return self.has_token(IDENTIFIER_NAME_TOKENS)

    @property
    def is_textual(self) -> bool:
        return bool(self.labels) and not self.is_identifier_like

    @property
    def is_categorical(self) -> bool:
        low, high = self.settings.categorical_min, self.settings.categorical_max
        return low <= len(self.distinct_labels) <= high


# ══════════════════════════════════════════════════════════════════════════
# CHECKS
# ══════════════════════════════════════════════════════════════════════════

def _dominant_outside(labels: list[str]) -> tuple[int, list[str]]:
    """How many entries fall outside the most common label, plus the labels seen."""
    counts = Counter(labels)
    if not counts:
        return 0, []
    dominant = counts.most_common(1)[0][1]
    return len(labels) - dominant, list(counts)


def check_header(col: ColumnProfile) -> Issue | None:
    name = col.name
    if HEADER_BAD_CHAR_RE.search(name) or name != name.strip() or name != name.lower():
        return build_issue(
            "header_inconsistency",
            name,
            1,
            f'Header "{name}" contains special characters, spaces or upper case.',
        )
    return None


def check_missing(col: ColumnProfile) -> Issue | None:
    missing = len(col.values) - len(col.non_empty)
    if missing == 0:
        return None
    severity = "error" if missing > len(col.values) * col.settings.missing_error_ratio else "warning"
    return build_issue(
        "missing_values",
        col.name,
        missing,
        f'{missing} missing values found in "{col.name}".',
        severity=severity,
    )


def check_date_format(col: ColumnProfile) -> Issue | None:
    buckets = [
        date_bucket(v)
        for v in col.non_empty
        if parse_date(v, col.settings.dayfirst) is not None
    ]
    outside, seen = _dominant_outside(buckets)
    if len(seen) <= 1:
        return None
    return build_issue(
        "date_format",
        col.name,
        outside,
        f'"{col.name}" mixes date formats ({", ".join(seen)}).',
    )


def check_phone_format(col: ColumnProfile) -> Issue | None:
    buckets = [phone_bucket(v) for v in col.non_empty]
    buckets = [b for b in buckets if b != "invalid"]
    outside, seen = _dominant_outside(buckets)
    if len(seen) <= 1 and "other" not in seen:
        return None
    if seen == ["other"]:
        outside = len(buckets)
    return build_issue(
        "phone_format",
        col.name,
        outside,
        f'"{col.name}" mixes phone number formats ({", ".join(seen)}).',
    )


def check_email_format(col: ColumnProfile) -> Issue | None:
    invalid = [
        v for v in col.non_empty
        if strip_invisible(str(v)) != INVALID_EMAIL and not is_valid_email(v)
    ]
    if not invalid:
        return None
    return build_issue(
        "email_format",
        col.name,
        len(invalid),
        f'{len(invalid)} malformed email addresses found in "{col.name}".',
    )


def check_duplicates(col: ColumnProfile) -> Issue | None:
    counts = Counter(duplicate_key(v) for v in col.non_empty)
    repeated = [key for key, n in counts.items() if n > 1]
    if not repeated:
        return None
    preview = ", ".join(repeated[:5])
    return build_issue(
        "duplicates",
        col.name,
        len(repeated),
        f'{len(repeated)} duplicated values found in "{col.name}" ({preview}).',
    )


def check_outliers(col: ColumnProfile) -> Issue | None:
    numbers = numeric_values(col.non_empty)
    if len(numbers) < col.settings.outlier_min_values:
        return None
    low, high = iqr_fences(numbers, col.settings.iqr_multiplier)
    outliers = [n for n in numbers if n < low or n > high]
    if not outliers:
        return None
    return build_issue(
        "outliers",
        col.name,
        len(outliers),
        f'{len(outliers)} outliers found in "{col.name}" outside [{low:g}, {high:g}].',
    )


def check_whitespace(col: ColumnProfile) -> Issue | None:
    padded = [v for v in col.non_empty if isinstance(v, str) and v != strip_invisible(v)]
    if not padded:
        return None
    return build_issue(
        "invisible_whitespace",
        col.name,
        len(padded),
        f'{len(padded)} cells in "{col.name}" contain leading, trailing or invisible whitespace.',
    )


def check_encoding(col: ColumnProfile) -> Issue | None:
    garbled = [v for v in col.non_empty if has_mojibake(v)]
    if not garbled:
        return None
    return build_issue(
        "corrupted_encoding",
        col.name,
        len(garbled),
        f'{len(garbled)} cells in "{col.name}" look like corrupted encoding.',
    )


def check_mixed_types(col: ColumnProfile) -> Issue | None:
    outside, seen = _dominant_outside(col.kinds)
    if len(seen) <= 1:
        return None
    return build_issue(
        "mixed_data_types",
        col.name,
        outside,
        f'"{col.name}" contains mixed data types: {", ".join(seen)}.',
    )


def check_capitalization(col: ColumnProfile) -> Issue | None:
    exact = set(col.labels)
    lowered = set(col.distinct_labels)
    if len(exact) <= len(lowered):
        return None
    return build_issue(
        "capitalization_inconsistency",
        col.name,
        len(exact) - len(lowered),
        f'Inconsistent capitalization in "{col.name}" (e.g. "India" vs "india").',
    )


def is_typo_pair(a: str, b: str, settings: Settings) -> bool:
    if a == b or distinct_known_labels(a, b):
        return False
    longest = max(len(a), len(b))
    distance = jellyfish.levenshtein_distance(a, b)
    if distance >= longest:
        return False
    return distance <= settings.typo_max_distance or distance <= settings.typo_max_ratio * longest


def is_category_variant(a: str, b: str) -> bool:
    if a == b or abs(len(a) - len(b)) > 3 or distinct_known_labels(a, b):
        return False
    return a in b or b in a


def _pairs(labels: list[str], predicate: Callable[[str, str], bool]) -> list[tuple[str, str]]:
    return [
        (a, b)
        for i, a in enumerate(labels)
        for b in labels[i + 1:]
        if predicate(a, b)
    ]


def check_typos(col: ColumnProfile) -> Issue | None:
    pairs = _pairs(col.distinct_labels, lambda a, b: is_typo_pair(a, b, col.settings))
    if not pairs:
        return None
    preview = ", ".join(f"{a} <-> {b}" for a, b in pairs[:5])
    return build_issue(
        "typos_mislabels",
        col.name,
        len(pairs),
        f'Possible typos or mislabels in "{col.name}": {preview}.',
    )


def check_category_variants(col: ColumnProfile) -> Issue | None:
    pairs = _pairs(col.distinct_labels, is_category_variant)
    if not pairs:
        return None
    return build_issue(
        "normalize_category",
        col.name,
        len(pairs),
        f'"{col.name}" contains categorical variants (e.g. "NY" vs "NYC").',
    )


def casing_style(text: str) -> str:
    if text.isupper():
        return "upper"
    if text.islower():
        return "lower"
    return "other"


def check_text_case(col: ColumnProfile) -> Issue | None:
    labels = col.labels
    if sum(len(label) for label in labels) / len(labels) <= 10:
        return None
    outside, seen = _dominant_outside([casing_style(label) for label in labels])
    if len(seen) <= 1:
        return None
    return build_issue(
        "normalize_case",
        col.name,
        outside,
        f'"{col.name}" contains inconsistent text casing.',
    )


def check_numeric_strings(col: ColumnProfile) -> Issue | None:
    convertible = [v for v in col.non_empty if is_numeric_string(v)]
    if not convertible:
        return None
    return build_issue(
        "convert_numeric_string",
        col.name,
        len(convertible),
        f'{len(convertible)} numeric values in "{col.name}" are stored as text.',
    )


def _always(col: ColumnProfile) -> bool:
    return True


COLUMN_RULES: tuple[tuple[str, Callable[[ColumnProfile], bool], Callable[[ColumnProfile], Issue | None]], ...] = (
    ("header", _always, check_header),
    ("missing", _always, check_missing),
    ("date_format", lambda c: c.is_date_like, check_date_format),
    ("phone_format", lambda c: c.is_phone_like, check_phone_format),
    ("email_format", lambda c: c.is_email_like, check_email_format),
    ("duplicates", _always, check_duplicates),
    ("outliers", _always, check_outliers),
    ("whitespace", _always, check_whitespace),
    ("encoding", _always, check_encoding),
    ("mixed_types", _always, check_mixed_types),
    ("capitalization", lambda c: c.is_textual and c.is_categorical, check_capitalization),
    ("typos", lambda c: c.is_textual and c.is_categorical, check_typos),
    ("category_variants", lambda c: c.is_textual and c.is_categorical, check_category_variants),
    ("text_case", lambda c: c.is_textual and not c.is_categorical, check_text_case),
    ("numeric_strings", lambda c: not (c.is_phone_like or c.is_identifier_like or c.is_date_like), check_numeric_strings),
)


# ══════════════════════════════════════════════════════════════════════════
# ENTRY POINTS
# ══════════════════════════════════════════════════════════════════════════

def detect_column(name: str, values: list[Any], settings: Settings = DEFAULT_SETTINGS) -> list[Issue]:
    col = ColumnProfile(name, values, settings)
    if not col.non_empty:
        return [
            build_issue(
                "empty_column",
                name,
                len(values),
                f'"{name}" is completely empty.',
            )
        ]

    issues = []
    for rule_name, applies, check in COLUMN_RULES:
        if not applies(col):
            continue
        issue = check(col)
        if issue is not None:
            logger.debug("column %r: %s -> %s (%d)", name, rule_name, issue.type, issue.count)
            issues.append(issue)
    return issues


def detect(dataset: Dataset, settings: Settings | None = None) -> list[Issue]:
    """Scan every column of ``dataset`` and return the issues found, column by column."""
    settings = settings or DEFAULT_SETTINGS
    return [
        issue
        for column in dataset_columns(dataset)
        for issue in detect_column(column, [row.get(column) for row in dataset], settings)
    ]
