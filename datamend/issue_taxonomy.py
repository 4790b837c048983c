"""
Shared datamend issue taxonomy.

This keeps severity, the fixing operation and the explain text for every
issue type in one place so the detector, the workflow and the CLI do not drift.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Iterable

SEVERITY_ORDER = ("error", "warning", "info")


ISSUE_DEFINITIONS = {
    "missing_values": {
        "severity": "warning",
        "fix": "fill_missing",
        "description": "Some cells in the column are empty or hold a placeholder such as n/a or '-'.",
        "evidence": "Cells match the empty predicate; more than 10% of rows escalates it to an error.",
        "disable_hint": "Use the leave_null strategy to normalize the gaps without inventing values.",
    },
    "duplicates": {
        "severity": "warning",
        "fix": "handle_duplicates",
        "description": "The same value appears in more than one row of the column.",
        "evidence": "Trimmed, case-insensitive values occur more than once; empties are ignored.",
        "disable_hint": "Ignore it for columns where repeats are expected, such as categories.",
    },
    "date_format": {
        "severity": "warning",
        "fix": "standardize_dates",
        "description": "A date-like column mixes several date formats.",
        "evidence": "Values fall into more than one of ISO, US, EU, text, serial or unrecognized.",
        "disable_hint": "Skip date standardization if the raw source formatting must be preserved.",
    },
    "phone_format": {
        "severity": "warning",
        "fix": "standardize_phones",
        "description": "A phone column mixes several phone number layouts.",
        "evidence": "Values fall into more than one phone format bucket or an unrecognized one.",
        "disable_hint": "Skip phone standardization if downstream systems expect the raw strings.",
    },
    "email_format": {
        "severity": "warning",
        "fix": "standardize_emails",
        "description": "An email column contains addresses that are not well formed.",
        "evidence": "Values fail the address shape check, contain '..', spaces, or edge dots.",
        "disable_hint": "Unrepairable addresses become 'invalid_email' so they can be reviewed.",
    },
    "empty_column": {
        "severity": "error",
        "fix": "remove_empty_column",
        "description": "Every cell in the column is empty.",
        "evidence": "No cell in the column carries a value.",
        "disable_hint": "Keep the column if a downstream schema requires it to exist.",
    },
    "header_inconsistency": {
        "severity": "info",
        "fix": "standardize_headers",
        "description": "The column name uses spaces, symbols, stray whitespace or upper case.",
        "evidence": "The header is not a trimmed lower-case snake_case identifier.",
        "disable_hint": "Keep original headers if other tools reference them by exact name.",
    },
    "capitalization_inconsistency": {
        "severity": "warning",
        "fix": "fix_capitalization_inconsistency",
        "description": "The same category is spelled with different capitalization.",
        "evidence": "Values that are equal case-insensitively are written differently.",
        "disable_hint": "Ignore it when letter case carries meaning in this column.",
    },
    "outliers": {
        "severity": "warning",
        "fix": "handle_outliers",
        "description": "Numeric values fall far outside the bulk of the column.",
        "evidence": "Values lie outside Q1 - 1.5*IQR .. Q3 + 1.5*IQR with at least 5 numbers.",
        "disable_hint": "Review outliers by hand when extreme values are legitimate.",
    },
    "convert_numeric_string": {
        "severity": "info",
        "fix": "convert_numeric_strings",
        "description": "Numbers are stored as text.",
        "evidence": "String cells contain only digits, separators and a sign.",
        "disable_hint": "Keep them as text for identifiers such as postcodes with leading zeros.",
    },
    "invisible_whitespace": {
        "severity": "warning",
        "fix": "remove_invisible_whitespace",
        "description": "Cells carry leading, trailing or zero-width whitespace.",
        "evidence": "The raw text differs from its trimmed, zero-width-free form.",
        "disable_hint": "Keep padding only if fixed-width consumers rely on it.",
    },
    "normalize_case": {
        "severity": "info",
        "fix": "normalize_case",
        "description": "Free-text values mix UPPER, lower and other casing styles.",
        "evidence": "A long-text column has values in more than one casing style.",
        "disable_hint": "Ignore it for prose where mixed case is natural.",
    },
    "normalize_category": {
        "severity": "info",
        "fix": "normalize_categories",
        "description": "Category labels look like variants of each other.",
        "evidence": "One label contains another with only a few extra characters.",
        "disable_hint": "Ignore it if the longer labels are genuinely different categories.",
    },
    "typos_mislabels": {
        "severity": "warning",
        "fix": "fix_typos_and_mislabels",
        "description": "Category labels differ by a small number of edits.",
        "evidence": "Levenshtein distance <= 2, or <= 50% of the longer label.",
        "disable_hint": "Ignore it when short codes legitimately differ by one character.",
    },
    "corrupted_encoding": {
        "severity": "warning",
        "fix": "fix_corrupted_encoding",
        "description": "Text shows double-encoded UTF-8 artifacts (mojibake).",
        "evidence": "Cells contain sequences such as 'Ã©' or 'â€™'.",
        "disable_hint": "Re-export the source as UTF-8 if the damage is widespread.",
    },
    "mixed_data_types": {
        "severity": "error",
        "fix": "fix_mixed_data_types",
        "description": "The column mixes numbers, booleans, dates and free text.",
        "evidence": "Non-empty values classify into more than one data type.",
        "disable_hint": "Split the column if it deliberately carries different kinds of value.",
    },
}

ISSUE_TYPES = tuple(ISSUE_DEFINITIONS)


@dataclass(frozen=True)
class Issue:
    type: str
    column: str
    count: int
    description: str
    severity: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def fix(self) -> str | None:
        return ISSUE_DEFINITIONS.get(self.type, {}).get("fix")


@dataclass(frozen=True)
class Rename:
    old: str
    new: str


def build_issue(
    issue_type: str,
    column: str,
    count: int,
    description: str,
    severity: str | None = None,
) -> Issue:
    definition = ISSUE_DEFINITIONS[issue_type]
    return Issue(
        type=issue_type,
        column=column,
        count=count,
        description=description,
        severity=severity or definition["severity"],
    )


def renames_from_map(header_map: dict[str, str]) -> list[Rename]:
    return [Rename(old, new) for old, new in header_map.items() if old != new]


def compose_renames(first: list[Rename], second: list[Rename]) -> list[Rename]:
    """Collapse two successive rename passes into one old -> final mapping."""
    later = {r.old: r.new for r in second}
    composed: list[Rename] = []
    seen: set[str] = set()
    for rename in first:
        final = later.get(rename.new, rename.new)
        seen.add(rename.new)
        if final != rename.old:
            composed.append(Rename(rename.old, final))
    touched = {r.old for r in first}
    for old, new in later.items():
        if old not in seen and old not in touched:
            composed.append(Rename(old, new))
    return composed


def remap_issue_columns(issues: Iterable[Issue], renames: Iterable[Rename]) -> list[Issue]:
    mapping = {r.old: r.new for r in renames}
    return [
        replace(issue, column=mapping[issue.column]) if issue.column in mapping else issue
        for issue in issues
    ]


def severity_rank(severity: str) -> int:
    try:
        return SEVERITY_ORDER.index(severity)
    except ValueError:
        return len(SEVERITY_ORDER)


def summarize_issues(issues: Iterable[Issue]) -> dict[str, int]:
    counts = {severity: 0 for severity in SEVERITY_ORDER}
    for issue in issues:
        counts[issue.severity] = counts.get(issue.severity, 0) + 1
    return counts
