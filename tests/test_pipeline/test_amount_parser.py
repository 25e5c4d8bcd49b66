"""
Tests for the currency amount parser.
"""

from decimal import Decimal

from compliance_engine.pipeline.amount_parser import is_round_amount, parse_amount


class TestParseAmount:
    """Test amount parsing and currency detection."""

    def test_dollar_amount(self):
        result = parse_amount("$1,234.56")
        assert result.amount == Decimal("1234.56")
        assert result.currency == "USD"
        assert result.confidence == 0.95

    def test_pound_sign(self):
        result = parse_amount(chr(163) + "500.00")
        assert result.amount == Decimal("500.00")
        assert result.currency == "GBP"

    def test_euro_and_yen(self):
        assert parse_amount("€75").currency == "EUR"
        assert parse_amount("¥1,000").amount == Decimal("1000")

    def test_space_after_symbol(self):
        result = parse_amount("$ 150,000")
        assert result.amount == Decimal("150000")

    def test_suspiciously_large(self):
        result = parse_amount("$5,000,000,000")
        assert result.confidence == 0.5

    def test_empty(self):
        result = parse_amount("")
        assert result.amount is None
        assert result.confidence == 0.0

    def test_none_input(self):
        assert parse_amount(None).amount is None

    def test_garbage(self):
        result = parse_amount("$abc")
        assert result.amount is None
        assert result.currency == "USD"


class TestIsRoundAmount:

    def test_whole_thousands(self):
        assert is_round_amount(Decimal("5000"))
        assert is_round_amount(Decimal("150000.00"))

    def test_not_round(self):
        assert not is_round_amount(Decimal("5000.50"))
        assert not is_round_amount(Decimal("1234"))

    def test_below_unit(self):
        assert not is_round_amount(Decimal("500"))

    def test_zero_and_none(self):
        assert not is_round_amount(Decimal("0"))
        assert not is_round_amount(None)

    def test_custom_unit(self):
        assert is_round_amount(Decimal("500"), unit=100)
