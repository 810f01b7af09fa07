"""
Tier eligibility evaluation.

Compares a profile's current-period activity against the requirements of
the tier one level above its current tier.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Dict, Any

from ..models import CustomerLoyaltyProfile
from .tier_catalog import LoyaltyTier, TierCatalog, catalog as default_catalog


@dataclass
class EligibilityResult:
    """
    eligible is the AND of every evaluated criterion. next_tier is only set
    when eligible; requirements is always populated when a next tier exists
    so callers can show progress.
    """
    eligible: bool
    next_tier: Optional[LoyaltyTier] = None
    requirements: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'eligible': self.eligible,
            'requirements': self.requirements,
        }
        if self.next_tier:
            data['nextTier'] = self.next_tier.to_dict()
        return data


def _criterion(required, current) -> Dict[str, Any]:
    return {
        'required': float(required) if isinstance(required, Decimal) else required,
        'current': float(current) if isinstance(current, Decimal) else current,
        'met': current >= required,
    }


def check_eligibility(profile: CustomerLoyaltyProfile, tier_catalog: TierCatalog = None) -> EligibilityResult:
    """
    Evaluate whether the profile qualifies for the next tier.

    Spending and transaction count are always checked. Referrals are only
    checked when the next tier declares them; reviews and social engagement
    are carried in the tier data but not evaluated.
    """
    tiers = tier_catalog or default_catalog

    current_tier = tiers.get_tier(profile.current_tier)
    if not current_tier:
        return EligibilityResult(eligible=False)

    next_tier = tiers.get_next_tier(current_tier.level)
    if not next_tier:
        return EligibilityResult(eligible=False)

    breakdown = requirements_breakdown(profile, next_tier)
    eligible = all(item['met'] for item in breakdown.values())

    return EligibilityResult(
        eligible=eligible,
        next_tier=next_tier if eligible else None,
        requirements=breakdown
    )


def requirements_breakdown(profile: CustomerLoyaltyProfile, tier: LoyaltyTier) -> Dict[str, Dict[str, Any]]:
    """Per-criterion {required, current, met} of a profile against one tier."""
    requirements = tier.requirements
    breakdown = {
        'spending': _criterion(
            requirements.min_spending,
            profile.current_period_spending or Decimal('0')
        ),
        'transactions': _criterion(
            requirements.min_transactions,
            profile.transaction_count or 0
        ),
    }

    criteria = requirements.additional_criteria
    if criteria and criteria.referrals:
        breakdown['referrals'] = _criterion(
            criteria.referrals,
            profile.successful_referrals or 0
        )

    return breakdown


def meets_requirements(profile: CustomerLoyaltyProfile, tier: LoyaltyTier) -> bool:
    return all(item['met'] for item in requirements_breakdown(profile, tier).values())


def progress_to_next(profile: CustomerLoyaltyProfile, tier_catalog: TierCatalog = None) -> Dict[str, Any]:
    """
    Distance to the next tier.

    percentage averages spending and transaction progress (each capped at
    100). At the top tier, or with an unknown tier, everything is zero and
    next_tier is None.
    """
    tiers = tier_catalog or default_catalog

    current_tier = tiers.get_tier(profile.current_tier)
    next_tier = tiers.get_next_tier(current_tier.level) if current_tier else None
    if not next_tier:
        return {
            'next_tier': None,
            'spending_needed': Decimal('0'),
            'transactions_needed': 0,
            'percentage': 0.0,
        }

    spending = profile.current_period_spending or Decimal('0')
    transactions = profile.transaction_count or 0
    required_spending = next_tier.requirements.min_spending
    required_transactions = next_tier.requirements.min_transactions

    spending_ratio = min(spending / required_spending, 1) if required_spending else 1
    transaction_ratio = min(Decimal(transactions) / required_transactions, 1) if required_transactions else 1
    percentage = round(float((spending_ratio + transaction_ratio) / 2 * 100), 1)

    return {
        'next_tier': next_tier,
        'spending_needed': max(required_spending - spending, Decimal('0')),
        'transactions_needed': max(required_transactions - transactions, 0),
        'percentage': percentage,
    }


def refresh_progress(profile: CustomerLoyaltyProfile, tier_catalog: TierCatalog = None) -> None:
    """Write progress_to_next() into the profile's status columns."""
    progress = progress_to_next(profile, tier_catalog)
    profile.next_tier = progress['next_tier'].id if progress['next_tier'] else None
    profile.spending_needed = progress['spending_needed']
    profile.transactions_needed = progress['transactions_needed']
    profile.progress_percentage = progress['percentage']
