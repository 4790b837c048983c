from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from datamend import __version__


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "datamend.cli"]
FIXED_STAMP = "20260301T010203Z"
SAMPLE_MAPS = ["--map", "name=full_name", "--map", "email=email_address", "--map", "phone=mobile", "--map", "city"]


def run_cli(*args: str, env: dict[str, str] | None = None, cwd: Path = ROOT) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env["DATAMEND_OUTPUT_STAMP"] = FIXED_STAMP
    merged_env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT), merged_env.get("PYTHONPATH")]))
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        env=merged_env,
    )


class DiagnoseCliTests(unittest.TestCase):
    def test_dirty_csv_returns_exit_3_and_writes_report(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("diagnose", "sample-data/messy_contacts.csv", "--out", tmpdir)
            self.assertEqual(proc.returncode, 3, proc.stderr)
            self.assertIn("Report written:", proc.stderr)
            self.assertIn("Quality score:", proc.stderr)
            report = json.loads((Path(tmpdir) / "report.json").read_text())
            self.assertEqual(report["contract"]["name"], "datamend.diagnose")
            self.assertEqual(report["rows"], 10)
            self.assertEqual(report["run_summary"]["generated_at"], "1970-01-01T00:00:00Z")

    def test_clean_csv_returns_exit_0(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            clean_path = Path(tmpdir) / "clean.csv"
            clean_path.write_text("name,city\nalice,paris\nbob,rome\n", encoding="utf-8")
            proc = run_cli("diagnose", str(clean_path), "--json", "--out", tmpdir)
            self.assertEqual(proc.returncode, 0, proc.stderr)
            report = json.loads(proc.stdout)
            self.assertEqual(report["summary"]["issue_count"], 0)
            self.assertEqual(report["quality_score"], 100)

    def test_json_mode_keeps_stdout_machine_readable(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("diagnose", "sample-data/messy_contacts.csv", "--json", "--out", tmpdir)
            self.assertEqual(proc.returncode, 3, proc.stderr)
            report = json.loads(proc.stdout)
            self.assertGreater(report["summary"]["issue_count"], 0)
            self.assertNotIn("Report written:", proc.stdout)

    def test_default_output_dir_uses_stamp(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "people.csv"
            source.write_text("name,city\nalice,paris\nbob,rome\n", encoding="utf-8")
            proc = run_cli("diagnose", str(source), cwd=Path(tmpdir))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            expected = Path(tmpdir) / "datamend-output" / f"people-{FIXED_STAMP}" / "report.json"
            self.assertTrue(expected.exists())

    def test_missing_input_returns_exit_1(self):
        proc = run_cli("diagnose", "sample-data/does-not-exist.csv")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_prose_txt_returns_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "notes.txt"
            path.write_text("Just some notes about the project.\n", encoding="utf-8")
            proc = run_cli("diagnose", str(path), "--out", tmpdir)
            self.assertEqual(proc.returncode, 2)
            self.assertIn("does not appear to contain delimited/tabular data", proc.stderr)

    def test_bad_config_returns_exit_1(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = Path(tmpdir) / "datamend.json"
            config.write_text('{"linkage": {"batch_size": 0}}', encoding="utf-8")
            proc = run_cli("diagnose", "sample-data/messy_contacts.csv", "--config", str(config), "--out", tmpdir)
            self.assertEqual(proc.returncode, 1)
            self.assertIn("batch_size", proc.stderr)


class CleanCliTests(unittest.TestCase):
    def test_single_operation_writes_output_and_summary(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            op = json.dumps({"type": "standardize_headers"})
            proc = run_cli("clean", "sample-data/messy_contacts.csv", "--op", op, "--out", tmpdir)
            self.assertEqual(proc.returncode, 0, proc.stderr)
            output = Path(tmpdir) / "messy_contacts-clean.csv"
            self.assertTrue(output.exists())
            header = output.read_text(encoding="utf-8").splitlines()[0]
            self.assertEqual(header, "customer_id,full_name,email,phone,signup_date,age,gender,country,notes")
            summary = json.loads((Path(tmpdir) / "clean-summary.json").read_text())
            self.assertEqual(summary["contract"]["name"], "datamend.clean_summary")
            self.assertEqual(summary["operations"], [{"type": "standardize_headers"}])

    def test_auto_with_xlsx_output(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("clean", "sample-data/messy_contacts.csv", "--auto", "--format", "xlsx", "--json", "--out", tmpdir)
            self.assertEqual(proc.returncode, 0, proc.stderr)
            summary = json.loads(proc.stdout)
            self.assertGreater(len(summary["operations"]), 1)
            self.assertGreaterEqual(summary["score_after"], summary["score_before"])
            self.assertTrue((Path(tmpdir) / "messy_contacts-clean.xlsx").exists())

    def test_dry_run_writes_nothing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("clean", "sample-data/messy_contacts.csv", "--auto", "--dry-run", "--out", tmpdir)
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertEqual(list(Path(tmpdir).iterdir()), [])

    def test_ops_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            ops_path = Path(tmpdir) / "ops.json"
            ops_path.write_text(
                json.dumps([{"type": "fill_missing", "column": "Age", "strategy": "median"}]),
                encoding="utf-8",
            )
            out_path = Path(tmpdir) / "cleaned.csv"
            proc = run_cli("clean", "sample-data/messy_contacts.csv", "--ops-file", str(ops_path), "--output", str(out_path))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertTrue(out_path.exists())

    def test_refuses_to_overwrite_output(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            out_path = Path(tmpdir) / "cleaned.csv"
            out_path.write_text("keep me\n", encoding="utf-8")
            op = json.dumps({"type": "standardize_headers"})
            proc = run_cli("clean", "sample-data/messy_contacts.csv", "--op", op, "--output", str(out_path))
            self.assertEqual(proc.returncode, 1)
            self.assertEqual(out_path.read_text(encoding="utf-8"), "keep me\n")

    def test_invalid_operation_json_returns_exit_1(self):
        proc = run_cli("clean", "sample-data/messy_contacts.csv", "--op", "{not json")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Invalid --op JSON", proc.stderr)

    def test_operation_without_type_returns_exit_1(self):
        proc = run_cli("clean", "sample-data/messy_contacts.csv", "--op", '{"column": "Age"}')
        self.assertEqual(proc.returncode, 1)
        self.assertIn("missing its 'type'", proc.stderr)

    def test_strict_fails_when_errors_remain(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            op = json.dumps({"type": "standardize_headers"})
            proc = run_cli("clean", "sample-data/messy_contacts.csv", "--op", op, "--strict", "--out", tmpdir)
            self.assertEqual(proc.returncode, 5, proc.stderr)

    def test_operations_are_required(self):
        proc = run_cli("clean", "sample-data/messy_contacts.csv")
        self.assertEqual(proc.returncode, 1)


class LinkCliTests(unittest.TestCase):
    def test_sample_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli(
                "link",
                "sample-data/customers_a.csv",
                "sample-data/customers_b.csv",
                *SAMPLE_MAPS,
                "--out",
                tmpdir,
            )
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertIn("Exact:", proc.stderr)
            self.assertTrue((Path(tmpdir) / "matches.xlsx").exists())
            report = json.loads((Path(tmpdir) / "linkage.json").read_text())
            summary = report["summary"]
            self.assertEqual(summary["file_a"], 5)
            self.assertEqual(summary["exact"] + summary["possible"] + summary["unmatched"], 5)
            self.assertGreaterEqual(summary["exact"], 1)
            self.assertEqual(report["mapping"]["city"], "city")

    def test_mapping_file_and_json_output(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            mapping = Path(tmpdir) / "mapping.json"
            mapping.write_text(json.dumps({"name": "full_name", "email": "email_address"}), encoding="utf-8")
            proc = run_cli(
                "link",
                "sample-data/customers_a.csv",
                "sample-data/customers_b.csv",
                "--mapping-file",
                str(mapping),
                "--mode",
                "strict",
                "--json",
                "--out",
                tmpdir,
            )
            self.assertEqual(proc.returncode, 0, proc.stderr)
            report = json.loads(proc.stdout)
            self.assertEqual(report["mode"], "strict")
            self.assertEqual(report["contract"]["name"], "datamend.linkage")

    def test_timeout_returns_partial(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli(
                "link",
                "sample-data/customers_a.csv",
                "sample-data/customers_b.csv",
                *SAMPLE_MAPS,
                "--timeout",
                "0",
                "--out",
                tmpdir,
            )
            self.assertEqual(proc.returncode, 6, proc.stderr)
            report = json.loads((Path(tmpdir) / "linkage.json").read_text())
            self.assertEqual(report["run_summary"]["status"], "partial")

    def test_bad_map_value(self):
        proc = run_cli("link", "sample-data/customers_a.csv", "sample-data/customers_b.csv", "--map", "=email")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("expected A=B", proc.stderr)


class MiscCliTests(unittest.TestCase):
    def test_explain_text(self):
        proc = run_cli("explain", "missing_values")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("Rule: missing_values", proc.stdout)
        self.assertIn("Auto-fixable: yes (fill_missing)", proc.stdout)

    def test_explain_json(self):
        proc = run_cli("explain", "outliers", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["fix"], "handle_outliers")
        self.assertTrue(payload["auto_fixable"])

    def test_explain_unknown_issue(self):
        proc = run_cli("explain", "bad_vibes")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unknown issue type", proc.stderr)

    def test_config_init_refuses_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "datamend.json"
            first = run_cli("config", "init", "--path", str(path))
            self.assertEqual(first.returncode, 0, first.stderr)
            payload = json.loads(path.read_text(encoding="utf-8"))
            self.assertIn("detection", payload)
            second = run_cli("config", "init", "--path", str(path))
            self.assertEqual(second.returncode, 1)
            self.assertIn("Refusing to overwrite", second.stderr)

    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0)
        self.assertEqual(proc.stdout.strip(), __version__)

    def test_unknown_command_returns_exit_1(self):
        proc = run_cli("frobnicate")
        self.assertEqual(proc.returncode, 1)


if __name__ == "__main__":
    unittest.main()
