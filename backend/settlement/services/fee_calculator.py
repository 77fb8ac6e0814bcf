"""
Platform fee calculation.

The discount is applied first, the platform fee is a percentage of the
discounted (final) amount, and the stylist receives the remainder, so
``platform_fee + stylist_payout == final_amount`` holds exactly after rounding.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from ..core.exceptions import ValidationException

Amount = Union[Decimal, int, float, str]

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class FeeBreakdown:
    original_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    platform_fee: Decimal
    stylist_payout: Decimal


def _to_decimal(value: Amount, field: str) -> Decimal:
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if amount < 0:
        raise ValidationException(
            f"{field} cannot be negative",
            code="NEGATIVE_AMOUNT",
            details={field: str(amount)},
        )
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


def calculate_fees(
    original_amount: Amount,
    discount_amount: Amount = 0,
    fee_percentage: Amount = Decimal("0.20"),
) -> FeeBreakdown:
    """
    Split a booking's price into platform fee and stylist payout.

    Args:
        original_amount: Price before discount (major units, e.g. NOK)
        discount_amount: Discount applied to the price; capped at the price
        fee_percentage: Platform share as a fraction in [0, 1]

    Returns:
        FeeBreakdown with every amount rounded half-up to two decimals

    Raises:
        ValidationException: On negative amounts or a fraction outside [0, 1]
    """
    original = _to_decimal(original_amount, "original_amount")
    discount = _to_decimal(discount_amount, "discount_amount")
    pct = fee_percentage if isinstance(fee_percentage, Decimal) else Decimal(str(fee_percentage))
    if pct < 0 or pct > 1:
        raise ValidationException(
            "fee_percentage must be between 0 and 1",
            code="INVALID_FEE_PERCENTAGE",
            details={"fee_percentage": str(pct)},
        )

    final = max(original - discount, Decimal("0.00"))
    platform_fee = (final * pct).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return FeeBreakdown(
        original_amount=original,
        discount_amount=min(discount, original),
        final_amount=final,
        platform_fee=platform_fee,
        stylist_payout=final - platform_fee,
    )


def to_minor_units(amount: Amount) -> int:
    """Convert a major-unit amount (kroner) to the processor's minor units (øre)."""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
