"""
Tests for tier eligibility and progress tracking.
"""
from decimal import Decimal

from oud_loyalty.models import CustomerLoyaltyProfile
from oud_loyalty.services.eligibility import (
    check_eligibility,
    meets_requirements,
    progress_to_next,
    refresh_progress,
    requirements_breakdown,
)
from oud_loyalty.services.tier_catalog import get_tier


def make_profile(tier='bronze', spending=0, transactions=0, referrals=0):
    return CustomerLoyaltyProfile(
        customer_id='cust_test',
        current_tier=tier,
        current_period_spending=Decimal(str(spending)),
        transaction_count=transactions,
        successful_referrals=referrals,
    )


class TestCheckEligibility:

    def test_bronze_to_silver_eligible(self):
        """Meeting silver's spend and transaction thresholds makes bronze eligible."""
        result = check_eligibility(make_profile('bronze', 2500, 10))
        assert result.eligible is True
        assert result.next_tier.id == 'silver'
        assert result.requirements['spending'] == {'required': 2500.0, 'current': 2500.0, 'met': True}

    def test_short_on_transactions(self):
        """Spending alone is not enough without the transaction count."""
        result = check_eligibility(make_profile('bronze', 5000, 9))
        assert result.eligible is False
        assert result.next_tier is None
        assert result.requirements['transactions']['met'] is False
        assert result.requirements['spending']['met'] is True

    def test_referrals_required_for_gold(self):
        """Gold declares a referral requirement that must be met."""
        result = check_eligibility(make_profile('silver', 8000, 30, referrals=1))
        assert result.eligible is False
        assert result.requirements['referrals'] == {'required': 2, 'current': 1, 'met': False}

    def test_gold_with_enough_referrals(self):
        """Enough referrals make silver eligible for gold."""
        result = check_eligibility(make_profile('silver', 8000, 30, referrals=2))
        assert result.eligible is True
        assert result.next_tier.id == 'gold'

    def test_reviews_and_social_not_evaluated(self):
        """Declared review and social criteria are not checked."""
        # Diamond declares reviews and social engagement; only referrals are checked
        result = check_eligibility(make_profile('platinum', 60000, 120, referrals=10))
        assert result.eligible is True
        assert set(result.requirements) == {'spending', 'transactions', 'referrals'}

    def test_top_tier_never_eligible(self):
        """Diamond has nowhere to go."""
        result = check_eligibility(make_profile('diamond', 10 ** 7, 10 ** 4, referrals=100))
        assert result.eligible is False
        assert result.requirements == {}

    def test_unknown_tier_not_eligible(self):
        """An unknown current tier is never eligible."""
        assert check_eligibility(make_profile('titanium', 10 ** 6, 1000)).eligible is False

    def test_only_looks_one_level_up(self):
        """A bronze profile with diamond numbers still only reaches silver."""
        # Meets diamond thresholds but is bronze: only silver is considered
        result = check_eligibility(make_profile('bronze', 60000, 120, referrals=10))
        assert result.next_tier.id == 'silver'

    def test_to_dict(self):
        """to_dict includes nextTier only when eligible."""
        data = check_eligibility(make_profile('bronze', 2500, 10)).to_dict()
        assert data['eligible'] is True
        assert data['nextTier']['id'] == 'silver'
        assert 'nextTier' not in check_eligibility(make_profile()).to_dict()


class TestRequirements:

    def test_breakdown_without_additional_criteria(self):
        """Tiers without extra criteria report spending and transactions only."""
        breakdown = requirements_breakdown(make_profile(), get_tier('silver'))
        assert set(breakdown) == {'spending', 'transactions'}

    def test_meets_requirements_for_current_tier(self):
        """meets_requirements checks a profile against its own tier."""
        assert meets_requirements(make_profile('gold', 7500, 25, 2), get_tier('gold')) is True
        assert meets_requirements(make_profile('gold', 7499, 25, 2), get_tier('gold')) is False


class TestProgress:

    def test_progress_to_next(self):
        """progress_to_next reports what is left for the next tier."""
        progress = progress_to_next(make_profile('gold', 10000, 35))
        assert progress['next_tier'].id == 'platinum'
        assert progress['spending_needed'] == Decimal('10000')
        assert progress['transactions_needed'] == 15
        # (10000/20000 + 35/50) / 2
        assert progress['percentage'] == 60.0

    def test_progress_capped_at_one_hundred(self):
        """Progress never goes past 100% and needs never go negative."""
        progress = progress_to_next(make_profile('bronze', 99999, 999))
        assert progress['percentage'] == 100.0
        assert progress['spending_needed'] == Decimal('0')
        assert progress['transactions_needed'] == 0

    def test_progress_at_top_tier(self):
        """Top tier has no next tier and zero progress."""
        progress = progress_to_next(make_profile('diamond', 100, 1))
        assert progress['next_tier'] is None
        assert progress['percentage'] == 0.0

    def test_refresh_progress_writes_status_columns(self):
        """refresh_progress stores progress on the profile columns."""
        profile = make_profile('silver', 3750, 5)
        refresh_progress(profile)
        assert profile.next_tier == 'gold'
        assert profile.spending_needed == Decimal('3750')
        assert profile.transactions_needed == 20
        assert profile.progress_percentage == 35.0
