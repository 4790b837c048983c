"""Shared versioned contracts for datamend machine outputs."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from datamend import __version__ as TOOL_VERSION
from datamend.issue_taxonomy import Issue, summarize_issues

CONTRACT_VERSIONS = {
    "datamend.diagnose": "1.0.0",
    "datamend.clean_summary": "1.0.0",
    "datamend.linkage": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    input_paths: list[Path],
    status: str = "ok",
    output_path: Path | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "datamend",
        "version": TOOL_VERSION,
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_files": [str(p) for p in input_paths],
        "output_file": str(output_path) if output_path else None,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def issue_summary(issues: list[Issue]) -> dict[str, Any]:
    return {
        "issue_count": len(issues),
        "by_severity": summarize_issues(issues),
        "by_type": {t: sum(1 for i in issues if i.type == t) for t in sorted({i.type for i in issues})},
    }


def build_diagnose_report(
    diagnosis: dict[str, Any],
    *,
    input_path: Path,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    issues: list[Issue] = diagnosis["issues"]
    return {
        "contract": build_contract("datamend.diagnose"),
        "file": str(input_path),
        "rows": diagnosis["rows"],
        "columns": list(diagnosis["columns"]),
        "quality_score": diagnosis["quality_score"],
        "summary": issue_summary(issues),
        "issues": [issue.to_dict() for issue in issues],
        "run_summary": build_run_summary(
            command="diagnose",
            input_paths=[input_path],
            metrics={"issues_found": len(issues), "quality_score": diagnosis["quality_score"]},
            warnings=warnings,
        ),
    }


def build_clean_summary(
    run: Any,
    *,
    input_path: Path,
    output_path: Path | None,
    dry_run: bool = False,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    payload = run.to_dict()
    payload["contract"] = build_contract("datamend.clean_summary")
    payload["dry_run"] = dry_run
    payload["summary"] = {
        "before": issue_summary(run.issues_before),
        "after": issue_summary(run.issues_after),
    }
    payload["run_summary"] = build_run_summary(
        command="clean",
        input_paths=[input_path],
        output_path=None if dry_run else output_path,
        metrics={
            "operations_applied": len(run.operations),
            "operations_skipped": len(run.skipped),
            "score_before": run.score_before,
            "score_after": run.score_after,
            "issues_fixed": run.progress["fixed"],
        },
        warnings=warnings,
    )
    return payload


def build_linkage_report(
    result: Any,
    *,
    input_paths: list[Path],
    mapping: dict[str, str],
    output_path: Path | None = None,
    status: str = "ok",
) -> dict[str, Any]:
    payload = result.to_dict()
    payload["contract"] = build_contract("datamend.linkage")
    payload["mapping"] = dict(mapping)
    payload["run_summary"] = build_run_summary(
        command="link",
        input_paths=input_paths,
        status=status,
        output_path=output_path,
        metrics=dict(result.summary),
    )
    return payload
