import unittest

from drone_epoch_annotator.epoch_rewriter import Span, epoch_to_http_date, rewrite_line, tokenize


class TestTokenize(unittest.TestCase):
    def test_splits_digit_runs_from_text(self):
        spans = list(tokenize("id=42, ts=1700000000"))
        self.assertEqual(spans, [
            Span("id=", False),
            Span("42", True),
            Span(", ts=", False),
            Span("1700000000", True),
        ])

    def test_join_gives_back_the_line(self):
        line = "  created_at: 1609459200 # 2021 01 01  "
        self.assertEqual("".join(span.text for span in tokenize(line)), line)

    def test_only_ascii_digits_form_runs(self):
        # superscript two is str.isdigit() but not an integer literal
        spans = list(tokenize("x² + 12"))
        self.assertEqual([s.text for s in spans if s.is_digits], ["12"])

    def test_empty_line(self):
        self.assertEqual(list(tokenize("")), [])


class TestEpochToHttpDate(unittest.TestCase):
    def test_epoch_zero(self):
        self.assertEqual(epoch_to_http_date(0), "Thu, 01 Jan 1970 00:00:00 GMT")

    def test_known_timestamp(self):
        self.assertEqual(epoch_to_http_date(1700000000), "Tue, 14 Nov 2023 22:13:20 GMT")

    def test_out_of_range_returns_none(self):
        self.assertIsNone(epoch_to_http_date(10 ** 20))


class TestRewriteLine(unittest.TestCase):
    def test_rewrites_only_values_above_threshold(self):
        self.assertEqual(
            rewrite_line("Test string 123 789", 500, 256),
            "Test string 123 Thu, 01 Jan 1970 00:13:09 GMT",
        )

    def test_long_line_is_left_alone(self):
        self.assertEqual(rewrite_line("Test string 123 789", 500, 5), "Test string 123 789")

    def test_zero_max_line_length_means_unlimited(self):
        self.assertEqual(
            rewrite_line("Test string 123 789", 500, 0),
            "Test string 123 Thu, 01 Jan 1970 00:13:09 GMT",
        )

    def test_line_exactly_at_limit_is_rewritten(self):
        line = "t=789"
        self.assertEqual(rewrite_line(line, 0, len(line)), "t=Thu, 01 Jan 1970 00:13:09 GMT")

    def test_default_threshold_rewrites_every_integer(self):
        self.assertEqual(rewrite_line("a 0 b"), "a Thu, 01 Jan 1970 00:00:00 GMT b")

    def test_surrounding_text_untouched(self):
        line = 'expires = 1700000000  # seconds'
        self.assertEqual(rewrite_line(line, 1000000000), 'expires = Tue, 14 Nov 2023 22:13:20 GMT  # seconds')

    def test_line_without_qualifying_numbers_is_identical(self):
        line = "for i in range(10):"
        self.assertEqual(rewrite_line(line, 1000000000), line)

    def test_unrepresentable_values_are_left_alone(self):
        line = "big = 99999999999999999999"
        self.assertEqual(rewrite_line(line, 0), line)

    def test_very_long_digit_run_is_left_alone(self):
        line = "DATA = " + "1" * 5000
        self.assertEqual(rewrite_line(line, 1000000000), line)

    def test_long_run_of_leading_zeros_still_rewritten(self):
        self.assertEqual(rewrite_line("0" * 5000 + "789", 500), "Thu, 01 Jan 1970 00:13:09 GMT")

    def test_leading_zeros_parse_as_decimal(self):
        self.assertEqual(rewrite_line("0789", 500), "Thu, 01 Jan 1970 00:13:09 GMT")

    def test_minus_sign_is_not_part_of_the_number(self):
        self.assertEqual(rewrite_line("-789", 500), "-Thu, 01 Jan 1970 00:13:09 GMT")

    def test_repeated_calls_are_identical(self):
        line = "ts: 1609459200, 1700000000"
        self.assertEqual(rewrite_line(line, 1000), rewrite_line(line, 1000))


if __name__ == '__main__':
    unittest.main()
