from __future__ import annotations

import unittest
from datetime import date

from datamend.parsing import (
    as_number,
    coerce_number,
    date_bucket,
    infer_column_type,
    iqr_fences,
    is_numeric_string,
    is_valid_email,
    parse_date,
    parse_numeric_string,
    phone_bucket,
    quartiles,
    to_number,
    value_kind,
)


class NumberParsingTests(unittest.TestCase):
    def test_strict_and_lenient_coercion(self):
        self.assertEqual(to_number("1,234.5"), 1234.5)
        self.assertIsNone(to_number(True))
        self.assertIsNone(to_number("12 kg"))
        self.assertEqual(coerce_number("$1,200"), 1200.0)
        self.assertIsNone(coerce_number("n/a"))

    def test_as_number_returns_int_for_integral_values(self):
        self.assertIsInstance(as_number(3.0), int)
        self.assertEqual(as_number(2.5), 2.5)

    def test_numeric_string_detection(self):
        self.assertTrue(is_numeric_string("1,234"))
        self.assertFalse(is_numeric_string("12a"))
        self.assertFalse(is_numeric_string(12))
        self.assertEqual(parse_numeric_string("1,200"), 1200)
        self.assertEqual(parse_numeric_string("3.5"), 3.5)


class DateParsingTests(unittest.TestCase):
    def test_iso_and_day_first(self):
        self.assertEqual(parse_date("2024-01-15"), date(2024, 1, 15))
        self.assertEqual(parse_date("15/02/2024"), date(2024, 2, 15))
        self.assertEqual(parse_date("03/04/2024"), date(2024, 4, 3))

    def test_month_first_when_requested(self):
        self.assertEqual(parse_date("03/04/2024", dayfirst=False), date(2024, 3, 4))

    def test_impossible_order_falls_back(self):
        self.assertEqual(parse_date("02/15/2024"), date(2024, 2, 15))

    def test_two_digit_years_pivot_at_fifty(self):
        self.assertEqual(parse_date("5/3/24"), date(2024, 3, 5))
        self.assertEqual(parse_date("1/1/99"), date(1999, 1, 1))

    def test_compact_and_textual_forms(self):
        self.assertEqual(parse_date("20240315"), date(2024, 3, 15))
        self.assertEqual(parse_date("March 5 2024"), date(2024, 3, 5))
        self.assertEqual(parse_date("5th March, 2024"), date(2024, 3, 5))

    def test_excel_serial(self):
        self.assertEqual(parse_date(45000), date(2023, 3, 15))
        self.assertIsNone(parse_date("12345"))

    def test_timezone_aware_values_use_utc_date(self):
        self.assertEqual(parse_date("2024-03-10T23:30:00-05:00"), date(2024, 3, 11))

    def test_non_dates(self):
        for value in ("hello", "(415) 555-0132", "", None, True):
            with self.subTest(value=value):
                self.assertIsNone(parse_date(value))

    def test_fractions_are_not_dates(self):
        for value in ("1/2", "3/4", "10-12"):
            with self.subTest(value=value):
                self.assertIsNone(parse_date(value))
                self.assertEqual(value_kind(value), "string")
        self.assertEqual(parse_date("Mar 5, 2024 10:00"), date(2024, 3, 5))

    def test_date_buckets(self):
        self.assertEqual(date_bucket("2024-01-15"), "iso")
        self.assertEqual(date_bucket("01/15/2024"), "us")
        self.assertEqual(date_bucket("15.01.2024"), "eu")
        self.assertEqual(date_bucket("March 5, 2024"), "text")
        self.assertEqual(date_bucket(date(2024, 1, 1)), "native")


class FormatTests(unittest.TestCase):
    def test_phone_buckets(self):
        self.assertEqual(phone_bucket("(415) 555-0132"), "parenthesized")
        self.assertEqual(phone_bucket("415-555-0132"), "dashed")
        self.assertEqual(phone_bucket("4155550132"), "plain")
        self.assertEqual(phone_bucket("+1 (415) 555-0132"), "standard")
        self.assertEqual(phone_bucket("Invalid phone"), "invalid")
        self.assertEqual(phone_bucket("call me"), "other")

    def test_email_validity(self):
        self.assertTrue(is_valid_email("a.b@x.com"))
        self.assertTrue(is_valid_email(" A.B@X.COM "))
        self.assertFalse(is_valid_email("a..b@x.com"))
        self.assertFalse(is_valid_email("a@x"))
        self.assertFalse(is_valid_email("priya.patel@example"))

    def test_value_kind(self):
        self.assertEqual(value_kind("12"), "number")
        self.assertEqual(value_kind("TRUE"), "boolean")
        self.assertEqual(value_kind(True), "boolean")
        self.assertEqual(value_kind("2024-01-01"), "date")
        self.assertEqual(value_kind("abc"), "string")

    def test_infer_column_type(self):
        self.assertEqual(infer_column_type(["1", "2", ""]), "number")
        self.assertEqual(infer_column_type(["2024-01-01", "15/02/2024"]), "date")
        self.assertEqual(infer_column_type(["a", "1"]), "string")
        self.assertEqual(infer_column_type([]), "string")


class StatisticsTests(unittest.TestCase):
    def test_quartiles_by_sorted_position(self):
        self.assertEqual(quartiles([100, 1, 2, 3, 4]), (2, 4))

    def test_iqr_fences(self):
        self.assertEqual(iqr_fences([1, 2, 3, 4, 100]), (-1.0, 7.0))
        self.assertEqual(iqr_fences([1, 2, 3, 4, 100], multiplier=3), (-4.0, 10.0))


if __name__ == "__main__":
    unittest.main()
