from __future__ import annotations

import unittest
from pathlib import Path

from datamend.config import Settings
from datamend.errors import LinkageCancelled
from datamend.linkage import (
    BlockingIndex,
    MatchResult,
    block,
    classify,
    compare_rows,
    field_kind,
    field_score,
    link,
)
from datamend.linkage.classifier import bucket_for
from datamend.linkage.similarity import build_field_specs, jaccard, name_blend
from datamend.loader import load_dataset


ROOT = Path(__file__).resolve().parents[1]
SAMPLE_MAPPING = {"name": "full_name", "email": "email_address", "phone": "mobile", "city": "city"}


def a_indices(result):
    return sorted(m.a_index for bucket in (result.exact, result.possible, result.unmatched) for m in bucket)


class FieldSimilarityTests(unittest.TestCase):
    def test_field_kind_from_column_name(self):
        self.assertEqual(field_kind("email_address"), "email")
        self.assertEqual(field_kind("mobile"), "phone")
        self.assertEqual(field_kind("phone_number"), "phone")
        self.assertEqual(field_kind("customer_id"), "identifier")
        self.assertEqual(field_kind("full_name"), "name")
        self.assertEqual(field_kind("street_address"), "address")
        self.assertEqual(field_kind("city"), "geo")
        self.assertEqual(field_kind("notes"), "default")

    def test_email_scores(self):
        self.assertEqual(field_score("email", "a@x.com", " A@X.com"), 1.0)
        self.assertEqual(field_score("email", "js@x.com", "jsmith@x.com"), 0.9)
        self.assertEqual(field_score("email", "", "a@x.com"), 0.0)

    def test_phone_digits_ignore_formatting(self):
        self.assertEqual(field_score("phone", "(415) 555-0132", "4155550132"), 1.0)

    def test_name_blend_ignores_token_order(self):
        self.assertEqual(field_score("name", "John Smith", "Smith, John"), 1.0)
        close = name_blend("jon smith", "john smith")
        self.assertGreater(close, 0.7)
        self.assertLess(close, 1.0)

    def test_default_scoring_depends_on_mode(self):
        self.assertAlmostEqual(jaccard("red blue", "blue green"), 1 / 3)
        self.assertAlmostEqual(field_score("default", "red blue", "blue green", "basic"), 1 / 3)
        self.assertEqual(field_score("default", "Red", "red", "strict"), 1.0)

    def test_scores_stay_in_unit_range(self):
        for kind in ("email", "phone", "identifier", "name", "address", "geo", "default"):
            for mode in ("basic", "advanced", "strict"):
                with self.subTest(kind=kind, mode=mode):
                    value = field_score(kind, "12 Main St", "Main Street 12", mode)
                    self.assertGreaterEqual(value, 0.0)
                    self.assertLessEqual(value, 1.0)


class BlockingTests(unittest.TestCase):
    DATASET_B = [
        {"full_name": "Smith John", "email_address": "js@example.com"},
        {"full_name": "Robert Lee", "email_address": "rlee@corp.io"},
        {"full_name": "Maria Garcia", "email_address": "maria@corp.io"},
    ]
    MAPPING = {"name": "full_name", "email": "email_address"}

    def index(self, cap=2000):
        return BlockingIndex(self.DATASET_B, build_field_specs(self.MAPPING), cap)

    def test_name_initial_bucket(self):
        self.assertEqual(self.index().candidates({"name": "John Smith"}), [0])

    def test_email_domain_bucket(self):
        self.assertEqual(self.index().candidates({"name": "", "email": "x@corp.io"}), [1, 2])

    def test_no_signal_falls_back_to_capped_prefix(self):
        self.assertEqual(self.index().candidates({"name": "", "email": ""}), [0, 1, 2])
        self.assertEqual(self.index(cap=1).candidates({"name": "", "email": ""}), [0])

    def test_block_yields_pairs_in_order(self):
        pairs = list(block([{"name": "John Smith"}, {"name": "Garcia, Maria"}], self.DATASET_B, self.MAPPING))
        self.assertEqual(pairs, [(0, 0), (1, 2)])


class ClassifierTests(unittest.TestCase):
    def test_fields_empty_on_both_sides_are_skipped(self):
        fields = build_field_specs({"name": "name", "email": "email"})
        score, vector = compare_rows({"name": "Ann Lee", "email": ""}, {"name": "Ann Lee", "email": None}, fields, "basic")
        self.assertEqual(score, 1.0)
        self.assertEqual(vector, {"name": 1.0})

    def test_one_sided_field_counts_as_zero(self):
        fields = build_field_specs({"name": "name", "email": "email"})
        score, vector = compare_rows({"name": "Ann Lee", "email": "ann@x.com"}, {"name": "Ann Lee", "email": ""}, fields, "basic")
        self.assertEqual(vector["email"], 0.0)
        self.assertAlmostEqual(score, 2 / 7)

    def test_nothing_to_compare(self):
        fields = build_field_specs({"name": "name"})
        self.assertIsNone(compare_rows({"name": ""}, {"name": None}, fields, "basic"))

    def test_thresholds_per_mode(self):
        self.assertEqual(bucket_for(0.95, True, "strict"), "exact")
        self.assertEqual(bucket_for(0.90, True, "strict"), "possible")
        self.assertEqual(bucket_for(0.90, True, "basic"), "exact")
        self.assertEqual(bucket_for(0.80, True, "advanced"), "possible")
        self.assertEqual(bucket_for(0.50, True, "basic"), "unmatched")
        self.assertEqual(bucket_for(1.0, False, "basic"), "unmatched")

    def test_classify_clears_partner_of_unmatched_rows(self):
        weak = MatchResult(a_index=0, row_a={"name": "x"}, b_index=3, row_b={"name": "y"}, similarity=0.2)
        buckets = classify([weak], "basic")
        self.assertEqual(buckets["unmatched"], [weak])
        self.assertIsNone(weak.b_index)
        self.assertIsNone(weak.row_b)
        self.assertEqual(weak.match_type, "unmatched")


class LinkTests(unittest.TestCase):
    def test_reordered_name_with_same_email_is_exact(self):
        result = link(
            [{"name": "John Smith", "email": "js@x.com"}],
            [{"name": "Smith John", "email": "js@x.com"}],
            {"name": "name", "email": "email"},
            mode="advanced",
        )
        self.assertEqual(len(result.exact), 1)
        self.assertEqual(result.exact[0].b_index, 0)
        self.assertAlmostEqual(result.exact[0].similarity, 1.0)
        self.assertEqual(result.exact[0].match_type, "exact")

    def test_sample_files_partition_every_row(self):
        dataset_a = load_dataset(ROOT / "sample-data" / "customers_a.csv")
        dataset_b = load_dataset(ROOT / "sample-data" / "customers_b.csv")
        result = link(dataset_a, dataset_b, SAMPLE_MAPPING)
        self.assertEqual(a_indices(result), list(range(len(dataset_a))))
        self.assertGreaterEqual(result.summary["exact"], 1)
        self.assertEqual(
            result.summary["exact"] + result.summary["possible"] + result.summary["unmatched"],
            len(dataset_a),
        )
        self.assertEqual(result.summary["file_b"], len(dataset_b))

    def test_empty_mapping_leaves_everything_unmatched(self):
        with self.assertLogs("datamend.linkage.matcher", level="WARNING"):
            result = link([{"a": 1}, {"a": 2}], [{"a": 1}], {})
        self.assertEqual(len(result.unmatched), 2)
        self.assertEqual(result.summary["pairs_scored"], 0)

    def test_empty_dataset_b(self):
        result = link([{"name": "Ann"}], [], {"name": "name"})
        self.assertEqual(len(result.unmatched), 1)

    def test_unknown_mode_falls_back_to_basic(self):
        with self.assertLogs("datamend.linkage.matcher", level="WARNING"):
            result = link([{"name": "Ann"}], [{"name": "Ann"}], {"name": "name"}, mode="fuzzy")
        self.assertEqual(result.mode, "basic")
        self.assertEqual(result.thresholds, {"exact": 0.90, "possible": 0.75})

    def test_batching_does_not_change_the_result(self):
        dataset_a = load_dataset(ROOT / "sample-data" / "customers_a.csv")
        dataset_b = load_dataset(ROOT / "sample-data" / "customers_b.csv")

        def outcome(result):
            return sorted(
                (m.a_index, m.b_index, round(m.similarity, 9), m.match_type)
                for bucket in (result.exact, result.possible, result.unmatched)
                for m in bucket
            )

        single = link(dataset_a, dataset_b, SAMPLE_MAPPING)
        batched = link(dataset_a, dataset_b, SAMPLE_MAPPING, settings=Settings(batch_size=2, max_workers=3))
        self.assertEqual(outcome(single), outcome(batched))

    def test_process_pool(self):
        dataset_a = [{"name": "John Smith"}, {"name": "Maria Garcia"}]
        dataset_b = [{"name": "Smith John"}, {"name": "Garcia Maria"}]
        settings = Settings(batch_size=1, max_workers=2, executor="process")
        result = link(dataset_a, dataset_b, {"name": "name"}, settings=settings)
        self.assertEqual([(m.a_index, m.b_index) for m in result.exact], [(0, 0), (1, 1)])

    def test_cancellation_keeps_completed_batches(self):
        answers = iter([False, True])
        dataset_a = [{"name": "Ann Lee"}, {"name": "Bob Ray"}, {"name": "Cy Young"}]
        dataset_b = [{"name": "Ann Lee"}]
        with self.assertRaises(LinkageCancelled) as ctx:
            link(
                dataset_a,
                dataset_b,
                {"name": "name"},
                settings=Settings(batch_size=1, max_workers=1),
                should_cancel=lambda: next(answers),
            )
        cancelled = ctx.exception
        self.assertEqual(cancelled.batches_done, 1)
        self.assertEqual(cancelled.batches_total, 3)
        self.assertEqual([m.a_index for m in cancelled.completed], [0])
        self.assertEqual(cancelled.completed[0].match_type, "exact")


if __name__ == "__main__":
    unittest.main()
