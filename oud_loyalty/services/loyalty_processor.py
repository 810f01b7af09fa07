"""
Loyalty Transaction Processor.

Orchestrates the loyalty actions against a customer profile:
- earn_points: purchase points, seasonal bonus, cashback, then tier upgrade
- redeem_points: spend available points (1 point = 0.1 AED)
- birthday_bonus: tier birthday bonus
- referral_bonus: fixed referral bonus

ATOMICITY:
Every action stages its profile changes and ledger entries in one session
and commits once. If anything fails (including the upgrade that follows an
earn) the session is rolled back and nothing is persisted.

IDEMPOTENCY:
None. Each call creates a new ledger entry and re-applies its deltas;
callers that retry must de-duplicate on their side (e.g. by transactionId).
"""
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, List, Optional

from flask import current_app

from ..models import (
    CustomerLoyaltyProfile,
    LoyaltyTransaction,
    LoyaltyTransactionType,
    LoyaltyTransactionSource,
)
from ..utils.exceptions import (
    LoyaltyError,
    ProfileNotFoundError,
    ValidationError,
    InvalidActionError,
    InvalidTierError,
    InsufficientPointsError,
)
from .cashback_calculator import compute_cashback
from .eligibility import refresh_progress
from .points_calculator import compute_points_earned, to_decimal
from .repository import LoyaltyRepository
from .tier_catalog import TierCatalog, catalog as default_catalog
from .tier_progression import advance


class LoyaltyProcessor:
    """
    Central service for loyalty actions.

    Usage:
        processor = LoyaltyProcessor()

        result = processor.process('earn_points', 'cust_001', {'amount': 500})
        result = processor.redeem_points('cust_001', 1000)
    """

    def __init__(self, repository: LoyaltyRepository = None, tier_catalog: TierCatalog = None,
                 config: dict = None):
        self.repository = repository or LoyaltyRepository()
        self.tiers = tier_catalog or default_catalog
        self.config = config if config is not None else current_app.config

    # ==================== Dispatch ====================

    def process(self, action: str, customer_id: str, data: Dict[str, Any] = None) -> Dict[str, Any]:
        """
        Dispatch a POST body to the matching action.

        Raises:
            InvalidActionError: unknown action
            ProfileNotFoundError: no profile for customer_id
            ValidationError / InsufficientPointsError / InvalidTierError: rejected request
        """
        data = data or {}

        if action == 'earn_points':
            return self.earn_points(
                customer_id,
                amount=data.get('amount'),
                categories=data.get('categories'),
                transaction_id=data.get('transactionId'),
                special_event=data.get('specialEvent'),
            )
        if action == 'redeem_points':
            return self.redeem_points(
                customer_id,
                points=data.get('points'),
                redemption_type=data.get('redemptionType') or 'discount',
                metadata=data.get('metadata'),
            )
        if action == 'birthday_bonus':
            return self.birthday_bonus(customer_id)
        if action == 'referral_bonus':
            return self.referral_bonus(customer_id, data.get('referralCustomerId'))

        raise InvalidActionError(action)

    # ==================== Actions ====================

    def earn_points(
        self,
        customer_id: str,
        amount,
        categories: Optional[List[str]] = None,
        transaction_id: str = None,
        special_event: str = None
    ) -> Dict[str, Any]:
        amount = self._parse_amount(amount)
        categories = self._parse_categories(categories)

        def apply(profile: CustomerLoyaltyProfile, now: datetime) -> Dict[str, Any]:
            tier_at_time = profile.current_tier
            tier = self.tiers.get_tier(tier_at_time)

            premium = set(self.config['LOYALTY_PREMIUM_CATEGORIES'])
            points_earned = compute_points_earned(
                amount,
                tier_at_time,
                is_special_category=bool(premium & set(categories)),
                tier_catalog=self.tiers
            )

            bonus_points = 0
            if special_event == 'ramadan' and tier:
                bonus_points += tier.seasonal_benefits.ramadan_bonus

            accrued = self.repository.get_cashback_accrued(profile.customer_id, now)
            cashback = compute_cashback(amount, tier_at_time, categories, accrued, self.tiers)

            expires_at = now + timedelta(days=self.config['LOYALTY_POINTS_EXPIRY_DAYS'])
            transaction = LoyaltyTransaction.approved(
                prefix='earn',
                customer_id=profile.customer_id,
                transaction_type=LoyaltyTransactionType.EARN,
                points=points_earned + bonus_points,
                source=LoyaltyTransactionSource.PURCHASE,
                description='Points earned from purchase',
                amount=amount,
                metadata={
                    'transactionId': transaction_id,
                    'tierAtTime': tier_at_time,
                    'expiresAt': expires_at.isoformat(),
                    'specialEvent': special_event,
                    'bonusPoints': bonus_points or None,
                    'cashback': float(cashback) if cashback else None,
                },
                expires_at=expires_at,
                now=now,
            )
            self.repository.append_transaction(transaction)
            self.repository.add_cashback_accrual(profile.customer_id, cashback, now)

            profile.credit_points(transaction.points)
            profile.record_purchase(amount, now)

            transition = advance(profile, self.tiers, now)
            upgrade_transaction = transition.transaction
            if transition.tier_changed:
                self.repository.append_transaction(upgrade_transaction)
                self.repository.log_tier_change(
                    profile.customer_id,
                    transition.previous_tier,
                    transition.new_tier,
                    'upgrade',
                    reason=f'Eligibility met after purchase {transaction.id}'
                )
                current_app.logger.info(
                    f'Tier upgrade: {profile.customer_id} {transition.previous_tier} -> {transition.new_tier}'
                )
            else:
                refresh_progress(profile, self.tiers)

            return {
                'success': True,
                'transaction': transaction.to_dict(),
                'upgradeTransaction': upgrade_transaction.to_dict() if upgrade_transaction else None,
                'pointsEarned': transaction.points,
                'cashback': float(cashback),
                'newTier': profile.current_tier if transition.tier_changed else None,
                'profile': {
                    'points': profile.points_summary(),
                    'currentTier': profile.current_tier,
                    'nextTier': profile.next_tier,
                },
            }

        return self._run('earn_points', customer_id, apply)

    def redeem_points(
        self,
        customer_id: str,
        points,
        redemption_type: str = 'discount',
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise ValidationError('points must be a positive integer', field='points')
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError('metadata must be an object', field='metadata')

        def apply(profile: CustomerLoyaltyProfile, now: datetime) -> Dict[str, Any]:
            if points > (profile.points_available or 0):
                raise InsufficientPointsError(profile.points_available or 0, points)

            redemption_value = Decimal(points) * self.config['LOYALTY_REDEMPTION_RATE']
            transaction = LoyaltyTransaction.approved(
                prefix='redeem',
                customer_id=profile.customer_id,
                transaction_type=LoyaltyTransactionType.REDEEM,
                points=-points,
                source=LoyaltyTransactionSource.MANUAL,
                description=f'Points redeemed for {redemption_type}',
                metadata={
                    **(metadata or {}),
                    'redemptionType': redemption_type,
                    'redemptionValue': float(redemption_value),
                    'tierAtTime': profile.current_tier,
                },
                now=now,
            )
            self.repository.append_transaction(transaction)

            profile.debit_points(points)
            profile.last_activity = now

            return {
                'success': True,
                'transaction': transaction.to_dict(),
                'redemptionValue': float(redemption_value),
                'pointsRedeemed': points,
                'remainingPoints': profile.points_available,
            }

        return self._run('redeem_points', customer_id, apply)

    def birthday_bonus(self, customer_id: str) -> Dict[str, Any]:
        def apply(profile: CustomerLoyaltyProfile, now: datetime) -> Dict[str, Any]:
            tier = self.tiers.get_tier(profile.current_tier)
            if not tier:
                raise InvalidTierError(profile.current_tier)

            bonus_points = tier.benefits.birthday_bonus
            transaction = LoyaltyTransaction.approved(
                prefix='birthday',
                customer_id=profile.customer_id,
                transaction_type=LoyaltyTransactionType.BONUS,
                points=bonus_points,
                source=LoyaltyTransactionSource.BIRTHDAY,
                description='Birthday bonus points',
                description_arabic='نقاط مكافأة عيد الميلاد',
                metadata={'tierAtTime': tier.id},
                now=now,
            )
            self.repository.append_transaction(transaction)

            profile.credit_points(bonus_points, count_lifetime=False)
            profile.last_activity = now

            return {
                'success': True,
                'transaction': transaction.to_dict(),
                'bonusPoints': bonus_points,
                'message': 'Happy Birthday! Bonus points added to your account.',
            }

        return self._run('birthday_bonus', customer_id, apply)

    def referral_bonus(self, customer_id: str, referral_customer_id: str) -> Dict[str, Any]:
        if not referral_customer_id:
            raise ValidationError('referralCustomerId is required', field='referralCustomerId')

        def apply(profile: CustomerLoyaltyProfile, now: datetime) -> Dict[str, Any]:
            referral_bonus = self.config['LOYALTY_REFERRAL_BONUS']
            transaction = LoyaltyTransaction.approved(
                prefix='referral',
                customer_id=profile.customer_id,
                transaction_type=LoyaltyTransactionType.BONUS,
                points=referral_bonus,
                source=LoyaltyTransactionSource.REFERRAL,
                description='Referral bonus points',
                metadata={'referralId': referral_customer_id, 'tierAtTime': profile.current_tier},
                now=now,
            )
            self.repository.append_transaction(transaction)

            profile.credit_points(referral_bonus, count_lifetime=False)
            profile.total_referred = (profile.total_referred or 0) + 1
            profile.successful_referrals = (profile.successful_referrals or 0) + 1
            profile.referral_bonus = (profile.referral_bonus or 0) + referral_bonus
            profile.last_activity = now
            refresh_progress(profile, self.tiers)

            return {
                'success': True,
                'transaction': transaction.to_dict(),
                'referralBonus': referral_bonus,
                'message': 'Referral bonus added successfully!',
            }

        return self._run('referral_bonus', customer_id, apply)

    # ==================== Helpers ====================

    def _run(self, action: str, customer_id: str, apply) -> Dict[str, Any]:
        """Load the profile, apply one action, commit once; roll back on any failure."""
        profile = self.repository.get_profile(customer_id, for_update=True)
        if not profile:
            raise ProfileNotFoundError(customer_id)

        try:
            result = apply(profile, datetime.utcnow())
            self.repository.save_profile(profile)
            self.repository.commit()
        except LoyaltyError as e:
            self.repository.rollback()
            current_app.logger.warning(f'Loyalty {action} rejected for {customer_id}: {e.message}')
            raise
        except Exception as e:
            self.repository.rollback()
            current_app.logger.error(f'Loyalty {action} failed for {customer_id}: {e}')
            raise

        current_app.logger.info(
            f'Loyalty {action}: {customer_id} '
            f'{result["transaction"]["points"]:+d} pts ({result["transaction"]["id"]})'
        )
        return result

    @staticmethod
    def _parse_amount(amount) -> Decimal:
        if amount is None or isinstance(amount, bool):
            raise ValidationError('amount is required', field='amount')
        try:
            value = to_decimal(amount)
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError('amount must be a number', field='amount')
        if not value.is_finite() or value < 0:
            raise ValidationError('amount must be a non-negative number', field='amount')
        return value

    @staticmethod
    def _parse_categories(categories) -> List[str]:
        if categories is None:
            return []
        if not isinstance(categories, list) or not all(isinstance(c, str) for c in categories):
            raise ValidationError('categories must be a list of strings', field='categories')
        return categories
