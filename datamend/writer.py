"""Persist cleaned rows and linkage results as CSV or a styled Excel workbook."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

import openpyxl
import pandas as pd
from openpyxl.cell import WriteOnlyCell
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from datamend.detector import dataset_columns
from datamend.issue_taxonomy import Issue

logger = logging.getLogger(__name__)

WRITE_ONLY_THRESHOLD = 20_000
OUTPUT_FORMATS = ("csv", "xlsx")

HEADER_GREEN = "4CAF50"
HEADER_RED   = "E53935"
HEADER_BLUE  = "1565C0"
HEADER_AMBER = "F9A825"

FILL_ERROR   = PatternFill("solid", fgColor="FCE4D6")   # soft orange
FILL_WARNING = PatternFill("solid", fgColor="FFF2CC")   # soft yellow


def _style_sheet(ws, col_widths: list[int], header_color: str) -> None:
    """Bold white header on a colored band, frozen first row, column widths."""
    fill = PatternFill("solid", fgColor=header_color)
    font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list], min_width: int = 10, max_width: int = 60, sample: int = 300) -> list[int]:
    if not rows:
        return []
    widths = [max(min_width, min(max_width, len(str(v)) + 2)) for v in rows[0]]
    for row in rows[1 : sample + 1]:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], min(max_width, len(str(val)) + 2))
    return widths


def _cell_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if hasattr(value, "isoformat"):
        return value
    return str(value)


def _table(rows: list[dict[str, Any]]) -> tuple[list[str], list[list[Any]]]:
    headers = dataset_columns(rows)
    return headers, [[_cell_value(row.get(h)) for h in headers] for row in rows]


def _append_sheet(wb, title: str, headers: list[str], body: list[list[Any]], color: str) -> Any:
    ws = wb.create_sheet(title)
    ws.append(headers)
    for row in body:
        ws.append(row)
    _style_sheet(ws, _infer_col_widths([headers] + body), color)
    return ws


def _append_issues_sheet(wb, issues: Iterable[Issue]) -> None:
    headers = ["column", "type", "severity", "count", "description"]
    body = [[i.column, i.type, i.severity, i.count, i.description] for i in issues]
    ws = _append_sheet(wb, "Issues", headers, body, HEADER_RED)
    for row_idx, row in enumerate(body, start=2):
        fill = FILL_ERROR if row[2] == "error" else FILL_WARNING if row[2] == "warning" else None
        if fill is not None:
            ws.cell(row_idx, 3).fill = fill
    for cell in ws["E"][1:]:
        cell.alignment = Alignment(wrap_text=True, vertical="top")


def _write_workbook_fast(rows: list[dict[str, Any]], path: Path) -> None:
    """write_only path for large outputs; no width inference or issue sheet."""
    wb = openpyxl.Workbook(write_only=True)
    ws = wb.create_sheet("Clean Data")
    headers, body = _table(rows)
    font = Font(bold=True, color="FFFFFF")
    fill = PatternFill("solid", fgColor=HEADER_GREEN)
    for i in range(1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(i)].width = 15
    header_cells = []
    for header in headers:
        cell = WriteOnlyCell(ws, value=header)
        cell.font = font
        cell.fill = fill
        header_cells.append(cell)
    ws.append(header_cells)
    for row in body:
        ws.append(row)
    wb.save(path)


def write_workbook(rows: list[dict[str, Any]], path: Path, issues: Iterable[Issue] | None = None) -> None:
    if len(rows) > WRITE_ONLY_THRESHOLD:
        _write_workbook_fast(rows, path)
        return
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    headers, body = _table(rows)
    _append_sheet(wb, "Clean Data", headers, body, HEADER_GREEN)
    if issues is not None:
        _append_issues_sheet(wb, issues)
    wb.save(path)


def write_dataset(
    rows: list[dict[str, Any]],
    path: "str | Path",
    issues: Iterable[Issue] | None = None,
) -> Path:
    """
    Write ``rows`` to ``path``; the suffix picks the format (.csv or .xlsx).

    For workbooks, ``issues`` adds an Issues sheet listing what remains.
    """
    path = Path(path)
    suffix = path.suffix.lower().lstrip(".")
    if suffix not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported output format '.{suffix}'. Supported: .csv, .xlsx")
    path.parent.mkdir(parents=True, exist_ok=True)

    if suffix == "csv":
        # object dtype keeps ints as ints next to missing cells
        frame = pd.DataFrame(rows, columns=dataset_columns(rows), dtype=object)
        frame.to_csv(path, index=False)
    else:
        write_workbook(rows, path, issues)
    logger.debug("Wrote %d rows to %s", len(rows), path)
    return path


def _union_columns(rows: list[dict[str, Any]]) -> list[str]:
    seen: dict[str, None] = {}
    for row in rows:
        seen.update(dict.fromkeys(row))
    return list(seen)


def linkage_rows(matches: list[Any], bucket: str) -> list[dict[str, Any]]:
    """Flatten MatchResults into one row each, A columns prefixed ``a_`` and B columns ``b_``."""
    flat = []
    for match in matches:
        row: dict[str, Any] = {
            "match_type": bucket,
            "a_index": match.a_index,
            "b_index": match.b_index,
            "similarity": round(match.similarity, 4),
        }
        row.update({f"a_{k}": v for k, v in match.row_a.items()})
        row.update({f"b_{k}": v for k, v in (match.row_b or {}).items()})
        flat.append(row)
    return flat


def write_linkage_workbook(result: Any, path: "str | Path") -> Path:
    """One sheet per bucket (Exact, Possible, Unmatched) plus a Summary sheet."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for title, bucket, color in (
        ("Exact", "exact", HEADER_GREEN),
        ("Possible", "possible", HEADER_AMBER),
        ("Unmatched", "unmatched", HEADER_RED),
    ):
        flat = linkage_rows(getattr(result, bucket), bucket)
        headers = _union_columns(flat) or ["match_type", "a_index", "b_index", "similarity"]
        body = [[_cell_value(row.get(h)) for h in headers] for row in flat]
        _append_sheet(wb, title, headers, body, color)
    summary = [[key, value] for key, value in result.summary.items()]
    summary.append(["mode", result.mode])
    _append_sheet(wb, "Summary", ["metric", "value"], summary, HEADER_BLUE)
    wb.save(path)
    return path
