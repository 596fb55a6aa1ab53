"""Tests for the Amount lovelace type.

Tests verify:
- construction from int and decimal strings, rejection of floats/bools/negatives
- exact addition beyond 64-bit range
- subtraction underflow raises DataConsistencyError
- decimal string rendering and ordering
"""

import pytest

from explorer_api.exceptions import DataConsistencyError
from explorer_api.models import Amount


class TestAmountConstruction:
    """Tests for Amount.parse and the constructor."""

    def test_parse_int(self) -> None:
        assert Amount.parse(1500000).value == 1500000

    def test_parse_decimal_string(self) -> None:
        assert Amount.parse("45000000000000000") == Amount(45000000000000000)

    def test_parse_string_with_whitespace(self) -> None:
        assert Amount.parse(" 42 ") == Amount(42)

    def test_rejects_float(self) -> None:
        with pytest.raises(TypeError):
            Amount.parse(1.5)  # type: ignore[arg-type]

    def test_rejects_bool(self) -> None:
        with pytest.raises(TypeError):
            Amount(True)

    def test_rejects_negative(self) -> None:
        with pytest.raises(ValueError):
            Amount(-1)

    @pytest.mark.parametrize("raw", ["1e6", "-5", "12.0", "", "abc"])
    def test_rejects_malformed_strings(self, raw: str) -> None:
        with pytest.raises(ValueError):
            Amount.parse(raw)

    @pytest.mark.parametrize("raw", ["\u0661\u0662\u0663", "\uff11\uff12", "\u00b2"])
    def test_rejects_non_ascii_digits(self, raw: str) -> None:
        with pytest.raises(ValueError, match="Not a decimal lovelace amount"):
            Amount.parse(raw)


class TestAmountArithmetic:
    """Tests for exact add/sub."""

    def test_add_beyond_64_bits(self) -> None:
        big = Amount(2**64)
        assert (big + big).value == 2**65

    def test_total_of_empty_is_zero(self) -> None:
        assert Amount.total([]) == Amount.ZERO

    def test_total(self) -> None:
        assert Amount.total([Amount(1), Amount(2), Amount(3)]) == Amount(6)

    def test_sub(self) -> None:
        assert Amount(100) - Amount(40) == Amount(60)

    def test_sub_to_zero(self) -> None:
        assert Amount(100) - Amount(100) == Amount.ZERO

    def test_sub_underflow_raises(self) -> None:
        with pytest.raises(DataConsistencyError):
            Amount(10) - Amount(11)

    def test_ordering(self) -> None:
        assert Amount(1) < Amount(2)
        assert max(Amount(7), Amount(3)) == Amount(7)


class TestAmountRendering:
    """Tests for decimal string output."""

    def test_no_exponent_notation(self) -> None:
        assert Amount(10**30).to_decimal_string() == "1" + "0" * 30

    def test_str(self) -> None:
        assert str(Amount(0)) == "0"
