"""
Tests for platform fee calculation.
"""

from decimal import Decimal

import pytest

from settlement.core.exceptions import ValidationException
from settlement.services.fee_calculator import calculate_fees, to_minor_units


class TestCalculateFees:
    def test_default_twenty_percent_fee(self):
        fees = calculate_fees(Decimal("1000.00"))

        assert fees.final_amount == Decimal("1000.00")
        assert fees.platform_fee == Decimal("200.00")
        assert fees.stylist_payout == Decimal("800.00")

    def test_fee_is_taken_from_discounted_amount(self):
        fees = calculate_fees(Decimal("1000.00"), Decimal("150.00"))

        assert fees.final_amount == Decimal("850.00")
        assert fees.platform_fee == Decimal("170.00")
        assert fees.stylist_payout == Decimal("680.00")

    def test_rounding_keeps_fee_and_payout_summing_to_final(self):
        fees = calculate_fees("333.33", 0, "0.20")

        assert fees.platform_fee == Decimal("66.67")
        assert fees.stylist_payout == Decimal("266.66")
        assert fees.platform_fee + fees.stylist_payout == fees.final_amount

    def test_discount_larger_than_price_is_capped(self):
        fees = calculate_fees(Decimal("200.00"), Decimal("500.00"))

        assert fees.final_amount == Decimal("0.00")
        assert fees.discount_amount == Decimal("200.00")
        assert fees.platform_fee == Decimal("0.00")
        assert fees.stylist_payout == Decimal("0.00")

    def test_accepts_float_percentage_from_settings(self):
        fees = calculate_fees(Decimal("500.00"), fee_percentage=0.15)

        assert fees.platform_fee == Decimal("75.00")

    @pytest.mark.parametrize(
        "original,discount",
        [(Decimal("-1.00"), Decimal("0")), (Decimal("100.00"), Decimal("-5.00"))],
    )
    def test_negative_amounts_rejected(self, original, discount):
        with pytest.raises(ValidationException) as exc_info:
            calculate_fees(original, discount)
        assert exc_info.value.code == "NEGATIVE_AMOUNT"

    @pytest.mark.parametrize("pct", ["-0.01", "1.5"])
    def test_percentage_outside_unit_interval_rejected(self, pct):
        with pytest.raises(ValidationException) as exc_info:
            calculate_fees(Decimal("100.00"), 0, Decimal(pct))
        assert exc_info.value.code == "INVALID_FEE_PERCENTAGE"


def test_to_minor_units():
    assert to_minor_units(Decimal("800.00")) == 80000
    assert to_minor_units(Decimal("199.99")) == 19999
    assert to_minor_units("0.005") == 1
