"""
loader.py — file loader for the datamend CLI

Supports: .csv .tsv .txt .xlsx .xlsm .json .jsonl

Public API:
    rows   = load_dataset("path/to/file.csv")
    loaded = load_file("path/to/file.xlsx", sheet_name="Sheet1")

The engine itself works on in-memory rows (a list of dicts keyed by column
name); this module is the boundary that turns files into those rows.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import chardet
import pandas as pd

from datamend.errors import LoadError

logger = logging.getLogger(__name__)

TEXT_FORMATS  = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS = {".xlsx", ".xlsm"}
JSON_FORMATS  = {".json"}
JSONL_FORMATS = {".jsonl"}
ALL_FORMATS   = TEXT_FORMATS | EXCEL_FORMATS | JSON_FORMATS | JSONL_FORMATS

DELIMITERS = ",;\t|"


@dataclass
class LoadedFile:
    rows: list[dict[str, Any]]
    columns: list[str]
    detected_format: str
    encoding: Optional[str] = None
    delimiter: Optional[str] = None
    sheet_name: Optional[str] = None
    sheet_names: Optional[list[str]] = None
    warnings: list[str] = field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING + DELIMITER DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw)
    detected = result.get("encoding")
    if not detected:
        return "utf-8"
    return detected.lower()


def read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line by line: UTF-8, then the detected encoding, then
    latin-1, then cp1252 with replacement. Embedded NUL bytes are dropped.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    text = "\n".join(decoded_lines)
    return text[1:] if text.startswith("\ufeff") else text


def detect_delimiter(text: str) -> str:
    """csv.Sniffer first; otherwise the candidate giving the most consistent column count."""
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])
    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=DELIMITERS).delimiter
        except csv.Error:
            pass

    best_delim, best_score = ",", float("-inf")
    for delim in DELIMITERS:
        rows = [
            row
            for row in csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if len(rows) < 2:
            continue
        width, hits = Counter(len(row) for row in rows).most_common(1)[0]
        score = width * 2.0 + (hits / len(rows)) * width
        if width == 1:
            score -= 10.0
        if score > best_score:
            best_delim, best_score = delim, score
    return best_delim


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def frame_to_rows(df: pd.DataFrame) -> list[dict[str, Any]]:
    """DataFrame -> list of row dicts; NaN and NaT become None."""
    df = df.rename(columns=lambda c: str(c))
    clean = df.astype(object).where(pd.notna(df), None)
    return clean.to_dict(orient="records")


def _load_text(path: Path, suffix: str) -> LoadedFile:
    raw       = path.read_bytes()
    encoding  = detect_encoding(raw)
    text      = read_text_safely(raw, encoding)
    delimiter = "\t" if suffix == ".tsv" else detect_delimiter(text)

    if suffix == ".txt":
        multi = [line for line in text.splitlines() if delimiter in line]
        if len(multi) < 2:
            raise LoadError(
                ".txt file does not appear to contain delimited/tabular data "
                f"(detected delimiter {delimiter!r})"
            )

    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            on_bad_lines="skip",
            sep=r"\|" if delimiter == "|" else delimiter,
            engine="python",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as exc:
        raise LoadError(f"Could not parse {suffix} file: {exc}") from exc

    return LoadedFile(
        rows=frame_to_rows(df),
        columns=[str(c) for c in df.columns],
        detected_format=suffix.lstrip("."),
        encoding=encoding,
        delimiter=delimiter,
    )


def _load_excel(path: Path, suffix: str, sheet_name: Optional[str]) -> LoadedFile:
    """
    Load one sheet of a workbook. With several sheets and no ``sheet_name``
    the first sheet is used and the others are reported as a warning.
    """
    warnings: list[str] = []
    try:
        with pd.ExcelFile(path, engine="openpyxl") as xf:
            all_sheets = list(xf.sheet_names)
    except (OSError, ValueError, KeyError) as exc:
        raise LoadError(f"Could not open workbook: {exc}") from exc

    if sheet_name is not None and sheet_name not in all_sheets:
        raise LoadError(f"Sheet '{sheet_name}' not found. Available: {all_sheets}")
    chosen = sheet_name if sheet_name is not None else all_sheets[0]
    if sheet_name is None and len(all_sheets) > 1:
        others = [s for s in all_sheets if s != chosen]
        warnings.append(
            f"Multiple sheets found ({len(all_sheets)} total); used '{chosen}'. Ignored: {others}"
        )

    try:
        df = pd.read_excel(path, sheet_name=chosen, dtype=str, engine="openpyxl")
    except (OSError, ValueError, KeyError) as exc:
        raise LoadError(f"Could not load sheet '{chosen}': {exc}") from exc

    return LoadedFile(
        rows=frame_to_rows(df),
        columns=[str(c) for c in df.columns],
        detected_format=suffix.lstrip("."),
        sheet_name=chosen,
        sheet_names=all_sheets,
        warnings=warnings,
    )


def _json_records(data: Any, warnings: list[str]) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        list_keys = [k for k, v in data.items() if isinstance(v, list)]
        if list_keys:
            warnings.append(f"Nested JSON: used array at top-level key '{list_keys[0]}'")
            return data[list_keys[0]]
        warnings.append("JSON is a single object; treated as a one-row table")
        return [data]
    raise LoadError(f"JSON root must be an array or object, got {type(data).__name__}")


def _load_json(path: Path, lines: bool) -> LoadedFile:
    raw      = path.read_bytes()
    encoding = detect_encoding(raw)
    text     = raw.decode(encoding, errors="replace")
    warnings: list[str] = []

    if lines:
        records, bad = [], []
        for line_num, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as exc:
                bad.append(f"line {line_num}: {exc}")
        if bad:
            warnings.append(f"{len(bad)} lines could not be parsed; first: {bad[0]}")
    else:
        try:
            records = _json_records(json.loads(text), warnings)
        except json.JSONDecodeError as exc:
            raise LoadError(f"Invalid JSON: {exc}") from exc

    df = pd.json_normalize(records) if records else pd.DataFrame()
    return LoadedFile(
        rows=frame_to_rows(df),
        columns=[str(c) for c in df.columns],
        detected_format="jsonl" if lines else "json",
        encoding=encoding,
        warnings=warnings,
    )


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_file(path: "str | Path", sheet_name: Optional[str] = None) -> LoadedFile:
    """
    Load any supported file.

    Raises:
        LoadError if the file is missing, the format is unsupported, or the
        content cannot be parsed.
    """
    path   = Path(path)
    suffix = path.suffix.lower()

    if not path.exists():
        raise LoadError(f"File not found: {path}")
    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise LoadError(f"Unsupported format '{suffix}'. Supported: {supported}")

    if suffix in TEXT_FORMATS:
        loaded = _load_text(path, suffix)
    elif suffix in EXCEL_FORMATS:
        loaded = _load_excel(path, suffix, sheet_name)
    else:
        loaded = _load_json(path, lines=suffix in JSONL_FORMATS)

    for warning in loaded.warnings:
        logger.warning("%s: %s", path.name, warning)
    logger.debug("Loaded %s: %d rows, %d columns", path.name, len(loaded.rows), len(loaded.columns))
    return loaded


def load_dataset(path: "str | Path", sheet_name: Optional[str] = None) -> list[dict[str, Any]]:
    return load_file(path, sheet_name).rows
