from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from datamend import __version__ as TOOL_VERSION
from datamend.cleaning import CleaningOperation
from datamend.config import load_settings, starter_config_text
from datamend.contracts import build_clean_summary, build_diagnose_report, build_linkage_report
from datamend.detector import detect
from datamend.errors import ConfigError, DatamendError, LinkageCancelled, LoadError, OperationError
from datamend.issue_taxonomy import ISSUE_DEFINITIONS
from datamend.linkage import MODES, link
from datamend.linkage.matcher import build_result
from datamend.loader import load_file
from datamend.workflow import clean, diagnose, suggest_operations
from datamend.writer import write_dataset, write_linkage_workbook

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_DIAGNOSE_ISSUES = 3
EXIT_VALIDATE_FAILED = 5
EXIT_PARTIAL = 6


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class DatamendArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True, default=str)


def timestamp_token() -> str:
    override = os.environ.get("DATAMEND_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(stem: str) -> Path:
    return Path.cwd() / "datamend-output" / f"{stem}-{timestamp_token()}"


def determine_output_dir(args: argparse.Namespace, stem: str) -> Path:
    if getattr(args, "out_dir", None):
        return Path(args.out_dir)
    return default_output_dir(stem)


def write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def safe_output_path(path: Path) -> Path:
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def remove_generated_at(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: "1970-01-01T00:00:00Z" if key == "generated_at" else remove_generated_at(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [remove_generated_at(item) for item in value]
    return value


def normalize_report_for_cli(payload: Any) -> Any:
    # a pinned output stamp means the caller wants reproducible files
    if os.environ.get("DATAMEND_OUTPUT_STAMP"):
        return remove_generated_at(payload)
    return payload


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def configure_logging(args: argparse.Namespace) -> None:
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (LoadError, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    if isinstance(exc, (ConfigError, OperationError, DatamendError)):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, ValueError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def settings_for(args: argparse.Namespace):
    return load_settings(getattr(args, "config", None))


def require_input(path: Path) -> None:
    if not path.exists():
        raise CliError(f"File not found: {path}", EXIT_COMMAND_ERROR)


# ══════════════════════════════════════════════════════════════════════════
# RENDERING
# ══════════════════════════════════════════════════════════════════════════

def render_diagnose_text(report: dict[str, Any]) -> str:
    summary = report["summary"]
    severity = summary["by_severity"]
    lines = [
        "datamend diagnose",
        f"File: {report['file']}",
        f"Rows: {report['rows']}",
        f"Columns: {len(report['columns'])}",
        f"Quality score: {report['quality_score']}/100",
        f"Issues: {summary['issue_count']} "
        f"(errors {severity.get('error', 0)}, warnings {severity.get('warning', 0)}, info {severity.get('info', 0)})",
    ]
    for issue in report["issues"]:
        lines.append(f"- [{issue['severity']}] {issue['column']}: {issue['type']} ({issue['count']})")
    return "\n".join(lines) + "\n"


def render_clean_text(summary: dict[str, Any], output_path: Path | None) -> str:
    progress = summary["progress"]
    lines = [
        "datamend clean",
        f"Rows: {summary['rows']}",
        f"Operations applied: {len(summary['operations'])}",
        f"Operations skipped: {len(summary['skipped'])}",
        f"Quality score: {summary['score_before']} -> {summary['score_after']}",
        f"Issues fixed: {progress['display']}",
    ]
    if summary["renames"]:
        lines.append("Renamed columns:")
        lines.extend(f"- {r['old']} -> {r['new']}" for r in summary["renames"])
    if output_path is not None:
        lines.append(f"Output: {output_path}")
    return "\n".join(lines) + "\n"


def render_link_text(report: dict[str, Any]) -> str:
    summary = report["summary"]
    thresholds = report["thresholds"]
    return (
        "datamend link\n"
        f"Mode: {report['mode']} (exact >= {thresholds['exact']}, possible >= {thresholds['possible']})\n"
        f"Rows A: {summary['file_a']}\n"
        f"Rows B: {summary['file_b']}\n"
        f"Exact: {summary['exact']}\n"
        f"Possible: {summary['possible']}\n"
        f"Unmatched: {summary['unmatched']}\n"
        f"Pairs scored: {summary['pairs_scored']}\n"
    )


# ══════════════════════════════════════════════════════════════════════════
# PARSER
# ══════════════════════════════════════════════════════════════════════════

def _add_common(sub: argparse.ArgumentParser) -> None:
    sub.add_argument("--config", help="JSON config file (see `datamend config init`)")
    sub.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    sub.add_argument("-v", "--verbose", action="store_true", help="Debug logs on stderr")


def build_parser() -> argparse.ArgumentParser:
    parser = DatamendArgumentParser(prog="datamend", description="Tabular data quality diagnosis, cleaning and record linkage.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    diagnose_cmd = subparsers.add_parser("diagnose", help="Detect data quality issues and score a file.")
    diagnose_cmd.add_argument("input", help="Input file path")
    diagnose_cmd.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    diagnose_cmd.add_argument("--output", help="Explicit report output path")
    diagnose_cmd.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name")
    diagnose_cmd.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    _add_common(diagnose_cmd)

    clean_cmd = subparsers.add_parser("clean", help="Apply cleaning operations and write the cleaned file.")
    clean_cmd.add_argument("input", help="Input file path")
    ops = clean_cmd.add_mutually_exclusive_group(required=True)
    ops.add_argument("--op", dest="ops", action="append", help='Operation as JSON, e.g. \'{"type": "fill_missing", "column": "age"}\'')
    ops.add_argument("--ops-file", dest="ops_file", help="JSON file holding a list of operations")
    ops.add_argument("--auto", action="store_true", help="Apply the suggested fix for every detected issue")
    clean_cmd.add_argument("--format", choices=["csv", "xlsx"], default="csv", help="Output format")
    clean_cmd.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    clean_cmd.add_argument("--output", help="Explicit cleaned-file output path")
    clean_cmd.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name")
    clean_cmd.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    clean_cmd.add_argument("--dry-run", action="store_true", help="Run the operations without writing outputs")
    clean_cmd.add_argument("--strict", action="store_true", help="Return exit code 5 when error-level issues remain")
    _add_common(clean_cmd)

    link_cmd = subparsers.add_parser("link", help="Match the rows of two files.")
    link_cmd.add_argument("file_a", help="Left-hand file; every row is classified")
    link_cmd.add_argument("file_b", help="Right-hand file searched for matches")
    mapping = link_cmd.add_mutually_exclusive_group(required=True)
    mapping.add_argument("--map", dest="maps", action="append", help="Column pair as A=B (repeatable)")
    mapping.add_argument("--mapping-file", dest="mapping_file", help="JSON object mapping A columns to B columns")
    link_cmd.add_argument("--mode", choices=list(MODES), default="basic", help="Matching mode")
    link_cmd.add_argument("--timeout", type=float, help="Stop at the next batch boundary after this many seconds")
    link_cmd.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    link_cmd.add_argument("--output", help="Explicit match workbook output path")
    link_cmd.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    _add_common(link_cmd)

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default="datamend.json", help="Config output path")

    explain = subparsers.add_parser("explain", help="Explain an issue type.")
    explain.add_argument("issue_type", help="Issue type, e.g. missing_values")
    explain.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    subparsers.add_parser("version", help="Print version")
    return parser


# ══════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════

def run_diagnose(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        require_input(input_path)
        settings = settings_for(args)
        loaded = load_file(input_path, sheet_name=args.sheet_name)
        out_dir = determine_output_dir(args, input_path.stem)
        report_path = Path(args.output) if args.output else out_dir / "report.json"

        report = build_diagnose_report(diagnose(loaded.rows, settings), input_path=input_path, warnings=loaded.warnings)
        report = normalize_report_for_cli(report)
        write_json(report_path, report)

        if args.json:
            maybe_emit_json_stdout(report, True)
        else:
            emit_human(render_diagnose_text(report).rstrip(), quiet=args.quiet)
            emit_human(f"Report written: {report_path}", quiet=args.quiet)
        return EXIT_DIAGNOSE_ISSUES if report["summary"]["issue_count"] > 0 else EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def load_operations(args: argparse.Namespace, rows: list[dict[str, Any]], settings) -> list[CleaningOperation]:
    if args.auto:
        return suggest_operations(rows, detect(rows, settings))
    if args.ops_file:
        path = Path(args.ops_file)
        require_input(path)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise CliError(f"Could not read operations file: {exc}", EXIT_COMMAND_ERROR) from exc
        if isinstance(payload, dict):
            payload = payload.get("operations", [])
        if not isinstance(payload, list):
            raise CliError("Operations file must hold a JSON list.", EXIT_COMMAND_ERROR)
        raw_ops = payload
    else:
        raw_ops = []
        for text in args.ops:
            try:
                raw_ops.append(json.loads(text))
            except json.JSONDecodeError as exc:
                raise CliError(f"Invalid --op JSON {text!r}: {exc}", EXIT_COMMAND_ERROR) from exc
    return [CleaningOperation.from_dict(item) for item in raw_ops]


def run_clean(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        require_input(input_path)
        settings = settings_for(args)
        loaded = load_file(input_path, sheet_name=args.sheet_name)
        operations = load_operations(args, loaded.rows, settings)

        out_dir = determine_output_dir(args, input_path.stem)
        output_path = Path(args.output) if args.output else out_dir / f"{input_path.stem}-clean.{args.format}"
        summary_path = out_dir / "clean-summary.json"
        if not args.dry_run:
            output_path = safe_output_path(output_path)

        run = clean(loaded.rows, operations, settings)
        summary = build_clean_summary(
            run,
            input_path=input_path,
            output_path=output_path,
            dry_run=args.dry_run,
            warnings=loaded.warnings,
        )
        summary = normalize_report_for_cli(summary)

        if not args.dry_run:
            write_dataset(run.rows, output_path, issues=run.issues_after)
            write_json(summary_path, summary)

        if args.json:
            maybe_emit_json_stdout(summary, True)
        else:
            emit_human(render_clean_text(summary, None if args.dry_run else output_path).rstrip(), quiet=args.quiet)
            if not args.dry_run:
                emit_human(f"Clean summary: {summary_path}", quiet=args.quiet)

        if args.strict and any(issue.severity == "error" for issue in run.issues_after):
            return EXIT_VALIDATE_FAILED
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def parse_mapping(args: argparse.Namespace) -> dict[str, str]:
    if args.mapping_file:
        path = Path(args.mapping_file)
        require_input(path)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise CliError(f"Could not read mapping file: {exc}", EXIT_COMMAND_ERROR) from exc
        if not isinstance(payload, dict):
            raise CliError("Mapping file root must be a JSON object.", EXIT_COMMAND_ERROR)
        return {str(k): str(v) for k, v in payload.items()}

    mapping: dict[str, str] = {}
    for item in args.maps:
        column_a, sep, column_b = item.partition("=")
        column_a = column_a.strip()
        if not column_a:
            raise CliError(f"Invalid --map value {item!r}; expected A=B", EXIT_COMMAND_ERROR)
        mapping[column_a] = column_b.strip() if sep and column_b.strip() else column_a
    return mapping


def deadline_after(seconds: float | None) -> Callable[[], bool] | None:
    if seconds is None:
        return None
    deadline = time.monotonic() + seconds
    return lambda: time.monotonic() >= deadline


def run_link(args: argparse.Namespace) -> int:
    path_a, path_b = Path(args.file_a), Path(args.file_b)
    try:
        require_input(path_a)
        require_input(path_b)
        settings = settings_for(args)
        mapping = parse_mapping(args)
        rows_a = load_file(path_a).rows
        rows_b = load_file(path_b).rows

        out_dir = determine_output_dir(args, f"{path_a.stem}-{path_b.stem}")
        workbook_path = safe_output_path(Path(args.output) if args.output else out_dir / "matches.xlsx")
        report_path = out_dir / "linkage.json"

        status, code = "ok", EXIT_SUCCESS
        try:
            result = link(rows_a, rows_b, mapping, args.mode, settings, should_cancel=deadline_after(args.timeout))
        except LinkageCancelled as exc:
            eprint(str(exc))
            result = build_result(exc.completed, len(rows_a), len(rows_b), args.mode, exc.pairs_scored)
            status, code = "partial", EXIT_PARTIAL

        write_linkage_workbook(result, workbook_path)
        report = build_linkage_report(
            result,
            input_paths=[path_a, path_b],
            mapping=mapping,
            output_path=workbook_path,
            status=status,
        )
        report = normalize_report_for_cli(report)
        write_json(report_path, report)

        if args.json:
            maybe_emit_json_stdout(report, True)
        else:
            emit_human(render_link_text(report).rstrip(), quiet=args.quiet)
            emit_human(f"Match workbook: {workbook_path}", quiet=args.quiet)
            emit_human(f"Linkage report: {report_path}", quiet=args.quiet)
        return code
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_text(config_path, starter_config_text())
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_explain(args: argparse.Namespace) -> int:
    definition = ISSUE_DEFINITIONS.get(args.issue_type)
    if definition is None:
        eprint(f"Unknown issue type: {args.issue_type}")
        return EXIT_COMMAND_ERROR
    payload = {
        "issue_type": args.issue_type,
        "severity": definition["severity"],
        "fix": definition["fix"],
        "description": definition["description"],
        "evidence": definition["evidence"],
        "auto_fixable": definition["fix"] is not None,
        "disable_hint": definition["disable_hint"],
    }
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        print(
            "\n".join(
                [
                    f"Rule: {args.issue_type}",
                    f"Severity: {payload['severity']}",
                    f"What it does: {payload['description']}",
                    f"What triggers it: {payload['evidence']}",
                    f"Auto-fixable: {'yes (' + payload['fix'] + ')' if payload['auto_fixable'] else 'no'}",
                    f"How to avoid/disable it: {payload['disable_hint']}",
                ]
            )
        )
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(args)
        if args.command == "diagnose":
            return run_diagnose(args)
        if args.command == "clean":
            return run_clean(args)
        if args.command == "link":
            return run_link(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "explain":
            return run_explain(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
