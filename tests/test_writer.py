import tempfile
import unittest
from pathlib import Path
from unittest import mock

from openpyxl import load_workbook

from datamend.issue_taxonomy import build_issue
from datamend.linkage import link
from datamend.loader import load_dataset
from datamend.writer import linkage_rows, write_dataset, write_linkage_workbook


ROWS = [{"name": "Ann", "age": 30}, {"name": "Bob", "age": None}]


class WriteDatasetTests(unittest.TestCase):
    def test_csv_round_trip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_dataset(ROWS, Path(tmpdir) / "out" / "clean.csv")
            rows = load_dataset(path)
        self.assertEqual(rows, [{"name": "Ann", "age": "30"}, {"name": "Bob", "age": ""}])

    def test_workbook_has_styled_data_and_issue_sheets(self):
        issues = [build_issue("missing_values", "age", 1, "1 missing", severity="error")]
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_dataset(ROWS, Path(tmpdir) / "clean.xlsx", issues=issues)
            wb = load_workbook(path)
            self.assertEqual(wb.sheetnames, ["Clean Data", "Issues"])
            data = wb["Clean Data"]
            self.assertEqual([c.value for c in data[1]], ["name", "age"])
            self.assertTrue(data["A1"].font.bold)
            self.assertEqual(data.freeze_panes, "A2")
            self.assertEqual(data["B2"].value, 30)
            self.assertEqual(wb["Issues"]["B2"].value, "missing_values")

    def test_large_outputs_use_write_only_path(self):
        with tempfile.TemporaryDirectory() as tmpdir, mock.patch("datamend.writer.WRITE_ONLY_THRESHOLD", 1):
            path = write_dataset(ROWS, Path(tmpdir) / "clean.xlsx", issues=[])
            wb = load_workbook(path)
            self.assertEqual(wb.sheetnames, ["Clean Data"])
            self.assertEqual(wb["Clean Data"]["A3"].value, "Bob")

    def test_unsupported_suffix(self):
        with self.assertRaises(ValueError):
            write_dataset(ROWS, "clean.parquet")


class LinkageWorkbookTests(unittest.TestCase):
    def test_one_sheet_per_bucket_plus_summary(self):
        result = link(
            [{"name": "John Smith"}, {"name": "Zed Zulu"}],
            [{"name": "Smith John"}],
            {"name": "name"},
        )
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_linkage_workbook(result, Path(tmpdir) / "matches.xlsx")
            wb = load_workbook(path)
            self.assertEqual(wb.sheetnames, ["Exact", "Possible", "Unmatched", "Summary"])
            exact = wb["Exact"]
            self.assertEqual(
                [c.value for c in exact[1]],
                ["match_type", "a_index", "b_index", "similarity", "a_name", "b_name"],
            )
            self.assertEqual(exact["F2"].value, "Smith John")
            self.assertEqual(wb["Possible"].max_row, 1)
            summary = {row[0].value: row[1].value for row in wb["Summary"].iter_rows(min_row=2)}
            self.assertEqual(summary["exact"], 1)
            self.assertEqual(summary["mode"], "basic")

    def test_linkage_rows_flatten_both_sides(self):
        result = link([{"name": "Ann"}], [], {"name": "name"})
        flat = linkage_rows(result.unmatched, "unmatched")
        self.assertEqual(flat, [{"match_type": "unmatched", "a_index": 0, "b_index": None, "similarity": 0.0, "a_name": "Ann"}])


if __name__ == "__main__":
    unittest.main()
