"""
PricingService - Platform Fee Calculations

Splits a shop group's gross amount into the platform fee and the seller's
net share. Amounts are integers in minor currency units; the fee is rounded
half-to-even so that rounding neither systematically over- nor under-collects.
"""

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Dict, Iterable, Tuple

PLATFORM_FEE_RATE = Decimal("0.03")


def calculate_fee_split(gross_amount: int, fee_rate: Decimal = PLATFORM_FEE_RATE) -> Tuple[int, int]:
    """
    Return (platform_fee_amount, seller_net_amount) for a gross amount.

    >>> calculate_fee_split(1000)
    (30, 970)
    >>> calculate_fee_split(50)  # 1.5 rounds to the even neighbour
    (2, 48)
    """
    if gross_amount < 0:
        raise ValueError("gross_amount must be non-negative")
    fee = int((Decimal(gross_amount) * fee_rate).quantize(Decimal("1"), rounding=ROUND_HALF_EVEN))
    return fee, gross_amount - fee


class PricingService:
    """Stateless pricing helpers used by checkout."""

    def __init__(self, fee_rate: Decimal = PLATFORM_FEE_RATE):
        self.fee_rate = fee_rate

    def line_total(self, unit_price: int, quantity: int) -> int:
        return unit_price * quantity

    def group_totals(self, lines: Iterable[Tuple[int, int]]) -> Dict[str, int]:
        """Totals for one shop group given (unit_price, quantity) lines."""
        gross = sum(self.line_total(price, qty) for price, qty in lines)
        fee, net = calculate_fee_split(gross, self.fee_rate)
        return {"gross_amount": gross, "platform_fee_amount": fee, "seller_net_amount": net}
