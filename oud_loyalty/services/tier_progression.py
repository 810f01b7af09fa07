"""
Tier progression state machine.

A profile's current_tier is its state. Two transitions exist:

- advance(): one level up, evaluated right after a purchase is recorded.
  Grants the new tier's welcome bonus.
- evaluate_degradation(): run periodically against tier_expiry.

      active --(expiry - warning_months)--> warning
      warning --(tier_expiry)--> grace
      grace --(expiry + grace_period_months)--> renewed | downgraded

  Once the grace period is over, a profile that still meets its current
  tier's requirements is renewed for another validity period (with the
  tier's renewal bonus); otherwise it drops one step to downgrade_to. Either
  way a new spending period starts.

Both functions mutate the profile in place and return a TierTransition; any
ledger entry they produce is returned, not persisted.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from dateutil.relativedelta import relativedelta

from ..models import (
    CustomerLoyaltyProfile,
    LoyaltyTransaction,
    LoyaltyTransactionType,
    LoyaltyTransactionSource,
)
from .eligibility import check_eligibility, meets_requirements, refresh_progress
from .tier_catalog import TierCatalog, catalog as default_catalog


NONE = 'none'
UPGRADED = 'upgraded'
WARNING = 'warning'
GRACE = 'grace'
RENEWED = 'renewed'
DOWNGRADED = 'downgraded'


@dataclass
class TierTransition:
    action: str
    previous_tier: Optional[str] = None
    new_tier: Optional[str] = None
    transaction: Optional[LoyaltyTransaction] = None

    @property
    def tier_changed(self) -> bool:
        return self.action in (UPGRADED, DOWNGRADED)

    def to_dict(self):
        return {
            'action': self.action,
            'previousTier': self.previous_tier,
            'newTier': self.new_tier,
            'transaction': self.transaction.to_dict() if self.transaction else None,
        }


def advance(
    profile: CustomerLoyaltyProfile,
    tier_catalog: TierCatalog = None,
    now: datetime = None
) -> TierTransition:
    """Move the profile up exactly one tier if it is eligible."""
    tiers = tier_catalog or default_catalog
    now = now or datetime.utcnow()

    eligibility = check_eligibility(profile, tiers)
    if not eligibility.eligible:
        return TierTransition(action=NONE, previous_tier=profile.current_tier)

    new_tier = eligibility.next_tier
    previous_tier = profile.current_tier
    welcome_bonus = new_tier.benefits.welcome_bonus

    profile.current_tier = new_tier.id
    profile.tier_expiry = now + relativedelta(months=new_tier.validity_months)
    profile.credit_points(welcome_bonus, count_lifetime=False)
    profile.unlock_achievement(f'tier_{new_tier.id}', new_tier.name, welcome_bonus, now)
    refresh_progress(profile, tiers)

    transaction = LoyaltyTransaction.approved(
        prefix='upgrade',
        customer_id=profile.customer_id,
        transaction_type=LoyaltyTransactionType.BONUS,
        points=welcome_bonus,
        source=LoyaltyTransactionSource.WELCOME,
        description=f'Tier upgrade to {new_tier.name}',
        description_arabic=f'ترقية المستوى إلى {new_tier.name_arabic}',
        metadata={'tierAtTime': new_tier.id, 'previousTier': previous_tier},
        now=now,
    )

    return TierTransition(
        action=UPGRADED,
        previous_tier=previous_tier,
        new_tier=new_tier.id,
        transaction=transaction
    )


def evaluate_degradation(
    profile: CustomerLoyaltyProfile,
    tier_catalog: TierCatalog = None,
    now: datetime = None
) -> TierTransition:
    """
    Periodic tier expiry check.

    No-op for the lowest tier, unknown tiers and profiles without a
    tier_expiry.
    """
    tiers = tier_catalog or default_catalog
    now = now or datetime.utcnow()

    tier = tiers.get_tier(profile.current_tier)
    if not tier or not profile.tier_expiry or not tier.degradation_rules.downgrade_to:
        return TierTransition(action=NONE, previous_tier=profile.current_tier)

    rules = tier.degradation_rules
    expiry = profile.tier_expiry

    if now < expiry - relativedelta(months=rules.warning_months):
        return TierTransition(action=NONE, previous_tier=tier.id)
    if now < expiry:
        return TierTransition(action=WARNING, previous_tier=tier.id)
    if now < expiry + relativedelta(months=rules.grace_period_months):
        return TierTransition(action=GRACE, previous_tier=tier.id)

    if meets_requirements(profile, tier):
        return _renew(profile, tier, tiers, now)

    target = tiers.get_tier(rules.downgrade_to)
    profile.current_tier = target.id
    profile.tier_expiry = now + relativedelta(months=target.validity_months)
    profile.current_period_spending = Decimal('0')
    refresh_progress(profile, tiers)

    return TierTransition(action=DOWNGRADED, previous_tier=tier.id, new_tier=target.id)


def _renew(profile, tier, tiers, now) -> TierTransition:
    profile.tier_expiry = now + relativedelta(months=tier.validity_months)
    profile.current_period_spending = Decimal('0')

    transaction = None
    renewal_bonus = tier.benefits.renewal_bonus
    if renewal_bonus:
        profile.credit_points(renewal_bonus, count_lifetime=False)
        transaction = LoyaltyTransaction.approved(
            prefix='renewal',
            customer_id=profile.customer_id,
            transaction_type=LoyaltyTransactionType.BONUS,
            points=renewal_bonus,
            source=LoyaltyTransactionSource.BONUS,
            description=f'{tier.name} renewal bonus',
            metadata={'tierAtTime': tier.id},
            now=now,
        )

    refresh_progress(profile, tiers)
    return TierTransition(action=RENEWED, previous_tier=tier.id, new_tier=tier.id, transaction=transaction)
