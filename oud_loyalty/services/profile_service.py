"""
Loyalty Profile Service.

Read side of the program endpoint plus the two profile mutations that do
not go through the processor:
- overview / history / program summary for GET
- partial profile update for PUT
- periodic tier degradation (CLI and scheduler)
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, List

from dateutil.relativedelta import relativedelta
from flask import current_app

from ..models import CustomerLoyaltyProfile
from ..utils.exceptions import ProfileNotFoundError, ValidationError, LoyaltyError
from .eligibility import check_eligibility, progress_to_next, refresh_progress
from .repository import LoyaltyRepository
from .tier_catalog import TierCatalog, catalog as default_catalog
from .tier_progression import evaluate_degradation, NONE, DOWNGRADED


def _int(value, field):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f'{field} must be a non-negative integer', field=field)
    return value


def _money(value, field):
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a number', field=field)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f'{field} must be a number', field=field)
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f'{field} must be a non-negative number', field=field)
    return amount


def _bool(value, field):
    if not isinstance(value, bool):
        raise ValidationError(f'{field} must be a boolean', field=field)
    return value


def _str(value, field):
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a string', field=field)
    return value


def _timestamp(value, field):
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(_str(value, field).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f'{field} must be an ISO-8601 timestamp', field=field)
    # Stored naive in UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _str_list(value, field):
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f'{field} must be a list of strings', field=field)
    return list(value)


# group -> {field: (column, parser)}
UPDATABLE_GROUPS = {
    'points': {
        'total': ('points_total', _int),
        'available': ('points_available', _int),
        'pending': ('points_pending', _int),
        'expired': ('points_expired', _int),
        'lifetime': ('points_lifetime', _int),
    },
    'spending': {
        'totalLifetime': ('total_lifetime_spending', _money),
        'currentPeriod': ('current_period_spending', _money),
        'averageOrderValue': ('average_order_value', _money),
        'lastPurchaseDate': ('last_purchase_date', _timestamp),
        'transactionCount': ('transaction_count', _int),
    },
    'status': {
        'isActive': ('is_active', _bool),
        'tierExpiry': ('tier_expiry', _timestamp),
        'lastActivity': ('last_activity', _timestamp),
    },
    'referrals': {
        'totalReferred': ('total_referred', _int),
        'successfulReferrals': ('successful_referrals', _int),
        'referralBonus': ('referral_bonus', _int),
    },
    'preferences': {
        'communicationMethod': ('communication_method', _str),
        'language': ('language', _str),
        'marketingConsent': ('marketing_consent', _bool),
        'categories': ('preferred_categories', _str_list),
    },
}

COMMUNICATION_METHODS = ('email', 'sms', 'push', 'whatsapp')
LANGUAGES = ('en', 'ar')


class LoyaltyProfileService:
    """
    Usage:
        service = LoyaltyProfileService()
        overview = service.get_overview('cust_001')
        service.update_profile('cust_001', {'engagementScore': 90})
    """

    def __init__(self, repository: LoyaltyRepository = None, tier_catalog: TierCatalog = None,
                 config: dict = None):
        self.repository = repository or LoyaltyRepository()
        self.tiers = tier_catalog or default_catalog
        self.config = config if config is not None else current_app.config

    # ==================== Reads ====================

    def program_info(self) -> Dict[str, Any]:
        return {
            'name': self.config['LOYALTY_PROGRAM_NAME'],
            'nameArabic': self.config['LOYALTY_PROGRAM_NAME_ARABIC'],
            'currency': self.config['LOYALTY_CURRENCY'],
            'pointsPerAED': self.config['LOYALTY_POINTS_PER_AED'],
            'redemptionRate': float(self.config['LOYALTY_REDEMPTION_RATE']),
        }

    def list_tiers(self) -> Dict[str, Any]:
        return {
            'tiers': [tier.to_dict(include_rules=False) for tier in self.tiers.all_tiers()],
            'program': self.program_info(),
        }

    def program_summary(self) -> Dict[str, Any]:
        program = self.program_info()
        program['description'] = 'Earn points, unlock tiers, and enjoy exclusive benefits'
        program['features'] = [
            'Tier-based benefits',
            'Points earning and redemption',
            'Cashback rewards',
            'Exclusive access',
            'Seasonal bonuses',
            'Referral rewards',
        ]
        return {
            'program': program,
            'tiers': len(self.tiers),
            'totalMembers': self.repository.count_profiles(),
            'pointsIssued': self.repository.total_points_issued(),
            'lastUpdated': datetime.utcnow().isoformat(),
        }

    def get_overview(self, customer_id: str) -> Dict[str, Any]:
        profile = self._get_profile(customer_id)
        tier = self.tiers.get_tier(profile.current_tier)
        progress = progress_to_next(profile, self.tiers)
        next_tier = progress['next_tier']

        return {
            'profile': profile.to_dict(),
            'tierData': tier.to_dict() if tier else None,
            'eligibility': check_eligibility(profile, self.tiers).to_dict(),
            'nextMilestones': {
                'nextTier': next_tier.name if next_tier else None,
                'spendingNeeded': float(progress['spending_needed']),
                'transactionsNeeded': progress['transactions_needed'],
            },
        }

    def get_history(self, customer_id: str, limit: int = None) -> Dict[str, Any]:
        profile = self._get_profile(customer_id)
        limit = limit or self.config['LOYALTY_HISTORY_DEFAULT_LIMIT']
        limit = min(limit, self.config['LOYALTY_HISTORY_MAX_LIMIT'])

        transactions = self.repository.list_transactions(profile.customer_id, limit)
        return {
            'customerId': profile.customer_id,
            'transactions': [tx.to_dict() for tx in transactions],
        }

    # ==================== Writes ====================

    def update_profile(self, customer_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge a partial profile into the stored one.

        Each top-level group is merged field by field; fields not present
        are left as they are. Unknown keys are rejected.
        A currentTier change is logged as a manual tier change and, unless
        status.tierExpiry is sent too, starts a fresh validity period.
        """
        if not isinstance(updates, dict):
            raise ValidationError('Request body must be a JSON object')

        allowed = set(UPDATABLE_GROUPS) | {'currentTier', 'achievements', 'engagementScore'}
        unknown = sorted(set(updates) - allowed)
        if unknown:
            raise ValidationError(f'Unknown profile fields: {", ".join(unknown)}')

        profile = self._get_profile(customer_id)
        changes = self._parse_updates(updates)

        try:
            previous_tier = profile.current_tier
            for column, value in changes.items():
                setattr(profile, column, value)

            if profile.points_available > profile.points_total:
                raise ValidationError('points.available cannot exceed points.total', field='points')

            if profile.current_tier != previous_tier:
                if 'tier_expiry' not in changes:
                    tier = self.tiers.get_tier(profile.current_tier)
                    profile.tier_expiry = datetime.utcnow() + relativedelta(months=tier.validity_months)
                self.repository.log_tier_change(
                    profile.customer_id, previous_tier, profile.current_tier, 'manual',
                    reason='Tier set through profile update'
                )

            refresh_progress(profile, self.tiers)
            profile.updated_at = datetime.utcnow()
            self.repository.save_profile(profile)
            self.repository.commit()
        except LoyaltyError:
            self.repository.rollback()
            raise
        except Exception as e:
            self.repository.rollback()
            current_app.logger.error(f'Profile update failed for {customer_id}: {e}')
            raise

        current_app.logger.info(f'Loyalty profile updated: {customer_id} ({", ".join(sorted(updates))})')

        return {
            'success': True,
            'profile': profile.to_dict(),
            'message': 'Loyalty profile updated successfully',
        }

    def process_degradations(self, dry_run: bool = False, now: datetime = None) -> Dict[str, Any]:
        """
        Run the tier expiry check over every profile with a tier_expiry.

        Each profile is committed on its own so one failure does not block
        the rest. With dry_run nothing is persisted.
        """
        now = now or datetime.utcnow()
        results = {
            'processed': 0,
            'warnings': 0,
            'grace': 0,
            'renewed': 0,
            'downgraded': 0,
            'errors': [],
        }

        for profile in self.repository.iter_profiles_with_expiry():
            results['processed'] += 1
            try:
                transition = evaluate_degradation(profile, self.tiers, now)
                if transition.action == NONE:
                    continue

                key = {
                    'warning': 'warnings',
                    'grace': 'grace',
                    'renewed': 'renewed',
                    'downgraded': 'downgraded',
                }[transition.action]
                results[key] += 1

                if dry_run:
                    self.repository.rollback()
                    continue

                if transition.transaction:
                    self.repository.append_transaction(transition.transaction)
                if transition.action == DOWNGRADED:
                    self.repository.log_tier_change(
                        profile.customer_id,
                        transition.previous_tier,
                        transition.new_tier,
                        'downgrade',
                        reason='Tier requirements not met after grace period'
                    )
                self.repository.save_profile(profile)
                self.repository.commit()

                if transition.tier_changed or transition.action == 'renewed':
                    current_app.logger.info(
                        f'Tier {transition.action}: {profile.customer_id} '
                        f'{transition.previous_tier} -> {transition.new_tier}'
                    )
            except Exception as e:
                self.repository.rollback()
                current_app.logger.error(f'Degradation failed for {profile.customer_id}: {e}')
                results['errors'].append({'customer_id': profile.customer_id, 'error': str(e)})

        current_app.logger.info(
            f'{"[DRY RUN] " if dry_run else ""}Tier degradation: processed={results["processed"]} '
            f'renewed={results["renewed"]} downgraded={results["downgraded"]}'
        )
        return results

    # ==================== Helpers ====================

    def _get_profile(self, customer_id: str, for_update: bool = False) -> CustomerLoyaltyProfile:
        profile = self.repository.get_profile(customer_id, for_update=for_update)
        if not profile:
            raise ProfileNotFoundError(customer_id)
        return profile

    def _parse_updates(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Validate the request and flatten it to {column: value}."""
        changes = {}

        if 'currentTier' in updates:
            tier_id = updates['currentTier']
            if not isinstance(tier_id, str) or not self.tiers.get_tier(tier_id):
                raise ValidationError(f'Unknown tier: {tier_id}', field='currentTier')
            changes['current_tier'] = tier_id

        if 'engagementScore' in updates:
            score = updates['engagementScore']
            if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 100:
                raise ValidationError('engagementScore must be an integer between 0 and 100',
                                      field='engagementScore')
            changes['engagement_score'] = score

        if 'achievements' in updates:
            changes['achievements'] = self._parse_achievements(updates['achievements'])

        for group, fields in UPDATABLE_GROUPS.items():
            if group not in updates:
                continue
            values = updates[group]
            if not isinstance(values, dict):
                raise ValidationError(f'{group} must be an object', field=group)

            unknown = sorted(set(values) - set(fields))
            if unknown:
                raise ValidationError(f'Unknown {group} fields: {", ".join(unknown)}', field=group)

            for key, value in values.items():
                column, parse = fields[key]
                changes[column] = parse(value, key)

        method = changes.get('communication_method')
        if method is not None and method not in COMMUNICATION_METHODS:
            raise ValidationError(f'Unsupported communication method: {method}', field='communicationMethod')
        language = changes.get('language')
        if language is not None and language not in LANGUAGES:
            raise ValidationError(f'Unsupported language: {language}', field='language')

        return changes

    @staticmethod
    def _parse_achievements(achievements) -> List[Dict[str, Any]]:
        if not isinstance(achievements, list):
            raise ValidationError('achievements must be a list', field='achievements')
        for item in achievements:
            if not isinstance(item, dict) or not item.get('id') or not item.get('name'):
                raise ValidationError('each achievement needs an id and a name', field='achievements')
        return [dict(item) for item in achievements]
