from decimal import Decimal

import pytest

from marketplace.cart.domain.services.pricing_service import PLATFORM_FEE_RATE, PricingService, calculate_fee_split


@pytest.mark.unit
class TestFeeSplit:
    def test_three_percent_of_one_thousand(self):
        assert calculate_fee_split(1000) == (30, 970)

    def test_fee_and_net_add_up_to_gross(self):
        for gross in (0, 1, 49, 50, 150, 999, 12345, 10_000_001):
            fee, net = calculate_fee_split(gross)
            assert fee + net == gross
            assert fee >= 0 and net >= 0

    def test_half_rounds_to_even(self):
        # 50 * 0.03 = 1.5 -> 2, 150 * 0.03 = 4.5 -> 4
        assert calculate_fee_split(50) == (2, 48)
        assert calculate_fee_split(150) == (4, 146)

    def test_zero_gross(self):
        assert calculate_fee_split(0) == (0, 0)

    def test_negative_gross_rejected(self):
        with pytest.raises(ValueError):
            calculate_fee_split(-1)

    def test_default_rate(self):
        assert PLATFORM_FEE_RATE == Decimal("0.03")


@pytest.mark.unit
class TestPricingServiceUnit:
    def setup_method(self):
        self.service = PricingService()

    def test_line_total(self):
        assert self.service.line_total(250, 4) == 1000

    def test_group_totals(self):
        totals = self.service.group_totals([(400, 2), (200, 1)])

        assert totals == {"gross_amount": 1000, "platform_fee_amount": 30, "seller_net_amount": 970}

    def test_group_totals_custom_rate(self):
        service = PricingService(fee_rate=Decimal("0.10"))

        totals = service.group_totals([(1000, 1)])

        assert totals["platform_fee_amount"] == 100
        assert totals["seller_net_amount"] == 900
