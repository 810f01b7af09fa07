"""
Tests for cashback calculation and the monthly cap.
"""
from decimal import Decimal

import pytest

from oud_loyalty.services.cashback_calculator import compute_cashback
from oud_loyalty.utils.exceptions import ValidationError


class TestComputeCashback:

    def test_bronze_has_no_cashback(self):
        """Bronze has cashback disabled."""
        assert compute_cashback(10000, 'bronze') == Decimal('0')

    def test_unknown_tier_has_no_cashback(self):
        """Unknown tiers earn no cashback."""
        assert compute_cashback(1000, 'titanium') == Decimal('0')

    def test_silver_one_percent(self):
        """Silver earns 1% cashback."""
        assert compute_cashback(1000, 'silver') == Decimal('10.00')

    def test_platinum_three_percent(self):
        """Platinum earns 3% cashback."""
        assert compute_cashback(1000, 'platinum') == Decimal('30.00')

    def test_platinum_special_category(self):
        """Premium Oud raises platinum's rate by 1.5x."""
        assert compute_cashback(1000, 'platinum', ['Premium Oud']) == Decimal('45.00')

    def test_platinum_accessories_is_special(self):
        """Accessories are on platinum's category list."""
        assert compute_cashback(1000, 'platinum', ['Accessories']) == Decimal('45.00')

    def test_gold_accessories_is_not_special(self):
        """Accessories earn gold's normal rate."""
        assert compute_cashback(1000, 'gold', ['Accessories']) == Decimal('20.00')

    def test_gold_premium_purchase_hits_cap(self):
        """A large premium gold purchase is capped at 150 AED."""
        # 5000 x 2% x 1.5 = 150 == max_monthly
        assert compute_cashback(5000, 'gold', ['Premium Oud']) == Decimal('150.00')

    def test_capped_at_max_monthly(self):
        """Cashback never exceeds the tier's monthly maximum."""
        assert compute_cashback(100000, 'silver') == Decimal('50.00')
        assert compute_cashback(1000000, 'diamond') == Decimal('1000.00')

    def test_category_bonus_ignored_on_diamond(self):
        """Diamond has no category list so no bonus rate."""
        assert compute_cashback(1000, 'diamond', ['Premium Oud']) == Decimal('50.00')

    def test_accrued_amount_reduces_cap(self):
        """Cashback already granted this month shrinks the cap."""
        assert compute_cashback(1000, 'gold', accrued_this_month=140) == Decimal('10.00')

    def test_exhausted_month_returns_zero(self):
        """Nothing is granted once the monthly budget is spent."""
        assert compute_cashback(1000, 'gold', accrued_this_month=150) == Decimal('0.00')
        assert compute_cashback(1000, 'gold', accrued_this_month=500) == Decimal('0.00')

    def test_rounded_to_cents(self):
        """Cashback is rounded to cents."""
        assert compute_cashback(333.33, 'silver') == Decimal('3.33')

    def test_negative_amount_rejected(self):
        """Negative amounts raise ValidationError."""
        with pytest.raises(ValidationError):
            compute_cashback(-1, 'gold')

    @pytest.mark.parametrize('tier_id', ['silver', 'gold', 'platinum', 'diamond'])
    def test_monthly_total_never_exceeds_cap(self, tier_id):
        """Repeated purchases in a month add up to exactly the cap."""
        from oud_loyalty.services.tier_catalog import get_tier

        cap = get_tier(tier_id).cashback.max_monthly
        accrued = Decimal('0')
        for _ in range(20):
            accrued += compute_cashback(7777, tier_id, ['Premium Oud'], accrued_this_month=accrued)
        assert accrued == cap
