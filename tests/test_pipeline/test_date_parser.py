"""
Tests for the day-first numeric date parser.
"""

from datetime import date

from compliance_engine.pipeline.date_parser import is_weekend, parse_numeric_date


class TestParseNumericDate:
    """Test numeric date parsing."""

    def test_slash_four_digit_year(self):
        result = parse_numeric_date("15/03/2024")
        assert result.parsed_date == date(2024, 3, 15)
        assert result.format_detected == "DD/MM/YYYY"

    def test_dash_two_digit_year(self):
        result = parse_numeric_date("15-03-24")
        assert result.parsed_date == date(2024, 3, 15)
        assert result.format_detected == "DD-MM-YY"

    def test_two_digit_year_pivot(self):
        assert parse_numeric_date("01/02/99").parsed_date == date(1999, 2, 1)
        assert parse_numeric_date("01/02/50").parsed_date == date(2050, 2, 1)

    def test_month_out_of_range(self):
        result = parse_numeric_date("05/13/2024")
        assert result.parsed_date is None
        assert result.format_detected == "DD/MM/YYYY"

    def test_impossible_calendar_date(self):
        assert parse_numeric_date("31/02/2024").parsed_date is None

    def test_leap_day(self):
        assert parse_numeric_date("29/02/2024").parsed_date == date(2024, 2, 29)
        assert parse_numeric_date("29/02/2023").parsed_date is None

    def test_three_digit_year(self):
        result = parse_numeric_date("01/02/202")
        assert result.parsed_date is None
        assert result.format_detected == "DD/MM/YYY"

    def test_mixed_separators(self):
        assert parse_numeric_date("15/03-2024").format_detected == "DD/MM-YYYY"

    def test_not_a_date(self):
        result = parse_numeric_date("March 15")
        assert result.parsed_date is None
        assert result.format_detected == "UNKNOWN"

    def test_empty(self):
        assert parse_numeric_date("").parsed_date is None


class TestIsWeekend:

    def test_saturday_and_sunday(self):
        assert is_weekend(date(2024, 3, 16))
        assert is_weekend(date(2024, 3, 17))

    def test_weekday(self):
        assert not is_weekend(date(2024, 3, 15))

    def test_none(self):
        assert not is_weekend(None)
