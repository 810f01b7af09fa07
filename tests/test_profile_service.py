"""
Tests for the LoyaltyProfileService (overview, history, profile updates, degradation runs).
"""
from datetime import datetime
from decimal import Decimal

import pytest
from dateutil.relativedelta import relativedelta

from oud_loyalty.models import CustomerLoyaltyProfile, LoyaltyTransaction, TierChangeLog
from oud_loyalty.services.loyalty_processor import LoyaltyProcessor
from oud_loyalty.services.profile_service import LoyaltyProfileService
from oud_loyalty.utils.exceptions import ProfileNotFoundError, ValidationError

NOW = datetime(2026, 3, 1, 12, 0)


def load(customer_id):
    return CustomerLoyaltyProfile.query.filter_by(customer_id=customer_id).first()


class TestReads:

    def test_list_tiers(self, app):
        """list_tiers returns the catalog with the program header."""
        with app.app_context():
            data = LoyaltyProfileService().list_tiers()
            assert len(data['tiers']) == 5
            assert data['program'] == {
                'name': 'Oud Premium Loyalty',
                'nameArabic': 'برنامج ولاء العود المميز',
                'currency': 'AED',
                'pointsPerAED': 10,
                'redemptionRate': 0.1,
            }

    def test_overview(self, app, gold_profile):
        """get_overview combines profile, tier, eligibility and milestones."""
        with app.app_context():
            data = LoyaltyProfileService().get_overview(gold_profile)

            assert data['profile']['customerId'] == gold_profile
            assert data['tierData']['id'] == 'gold'
            assert data['eligibility']['eligible'] is False
            assert data['nextMilestones'] == {
                'nextTier': 'Platinum Member',
                'spendingNeeded': 11500.0,
                'transactionsNeeded': 15,
            }

    def test_overview_missing_profile(self, app):
        """get_overview raises for unknown customers."""
        with app.app_context():
            with pytest.raises(ProfileNotFoundError):
                LoyaltyProfileService().get_overview('cust_missing')

    def test_history_limit_is_capped(self, app, bronze_profile):
        """get_history honours limit up to the configured maximum."""
        with app.app_context():
            processor = LoyaltyProcessor()
            for _ in range(4):
                processor.earn_points(bronze_profile, 100)

            service = LoyaltyProfileService()
            assert len(service.get_history(bronze_profile, limit=2)['transactions']) == 2
            assert len(service.get_history(bronze_profile)['transactions']) == 4

            config = dict(app.config, LOYALTY_HISTORY_MAX_LIMIT=3)
            capped = LoyaltyProfileService(config=config).get_history(bronze_profile, limit=100)
            assert len(capped['transactions']) == 3

    def test_program_summary_counts_from_store(self, app, gold_profile, bronze_profile):
        """program_summary counts members and issued points from the database."""
        with app.app_context():
            LoyaltyProcessor().earn_points(bronze_profile, 1000)
            LoyaltyProcessor().redeem_points(gold_profile, 50)

            data = LoyaltyProfileService().program_summary()
            assert data['totalMembers'] == 2
            assert data['pointsIssued'] == 100
            assert data['tiers'] == 5
            assert 'Referral rewards' in data['program']['features']


class TestUpdateProfile:

    def test_merges_groups_field_wise(self, app, gold_profile):
        """Only the sent fields change; the rest of each group is kept."""
        with app.app_context():
            result = LoyaltyProfileService().update_profile(gold_profile, {
                'preferences': {'language': 'ar'},
                'engagementScore': 90,
            })

            assert result['success'] is True
            assert result['message'] == 'Loyalty profile updated successfully'
            preferences = result['profile']['preferences']
            assert preferences['language'] == 'ar'
            assert preferences['communicationMethod'] == 'email'
            assert preferences['categories'] == ['Premium Oud', 'Floral']

            profile = load(gold_profile)
            assert profile.engagement_score == 90
            assert profile.points_available == 12000

    def test_tier_change_refreshes_progress(self, app, gold_profile):
        """A new currentTier recomputes the next-tier progress."""
        with app.app_context():
            LoyaltyProfileService().update_profile(gold_profile, {'currentTier': 'platinum'})
            profile = load(gold_profile)
            assert profile.current_tier == 'platinum'
            assert profile.next_tier == 'diamond'

    def test_updates_timestamp(self, app, gold_profile):
        """Every update bumps updated_at."""
        with app.app_context():
            before = load(gold_profile).updated_at
            LoyaltyProfileService().update_profile(gold_profile, {'engagementScore': 10})
            assert load(gold_profile).updated_at >= before

    def test_spending_values(self, app, gold_profile):
        """Money and timestamp fields are parsed."""
        with app.app_context():
            LoyaltyProfileService().update_profile(gold_profile, {
                'spending': {'currentPeriod': 100.5, 'lastPurchaseDate': '2026-01-02T10:00:00Z'},
            })
            profile = load(gold_profile)
            assert profile.current_period_spending == Decimal('100.50')
            assert profile.last_purchase_date == datetime(2026, 1, 2, 10, 0)

    def test_offset_timestamps_stored_as_utc(self, app, gold_profile):
        """A +04:00 tier expiry is converted to UTC before it is stored."""
        with app.app_context():
            result = LoyaltyProfileService().update_profile(gold_profile, {
                'status': {'tierExpiry': '2030-01-15T00:00:00+04:00'},
            })
            assert load(gold_profile).tier_expiry == datetime(2030, 1, 14, 20, 0)
            assert result['profile']['status']['tierExpiry'] == '2030-01-14T20:00:00'

    def test_tier_change_is_logged_as_manual(self, app, gold_profile):
        """Setting currentTier writes a manual TierChangeLog row and restarts the expiry."""
        with app.app_context():
            LoyaltyProfileService().update_profile(gold_profile, {'currentTier': 'platinum'})

            log = TierChangeLog.query.filter_by(customer_id=gold_profile).one()
            assert log.previous_tier == 'gold'
            assert log.new_tier == 'platinum'
            assert log.change_type == 'manual'

            profile = load(gold_profile)
            assert profile.tier_expiry != datetime(2030, 1, 15)
            assert profile.tier_expiry > datetime.utcnow()

    def test_tier_change_keeps_explicit_expiry(self, app, gold_profile):
        """An explicit status.tierExpiry wins over the fresh validity period."""
        with app.app_context():
            LoyaltyProfileService().update_profile(gold_profile, {
                'currentTier': 'silver',
                'status': {'tierExpiry': '2027-06-01T00:00:00Z'},
            })
            assert load(gold_profile).tier_expiry == datetime(2027, 6, 1)
            assert TierChangeLog.query.filter_by(customer_id=gold_profile).count() == 1

    def test_same_tier_is_not_logged(self, app, gold_profile):
        """Re-sending the current tier is not a tier change."""
        with app.app_context():
            LoyaltyProfileService().update_profile(gold_profile, {'currentTier': 'gold'})
            assert TierChangeLog.query.count() == 0
            assert load(gold_profile).tier_expiry == datetime(2030, 1, 15)

    @pytest.mark.parametrize('updates', [
        {'nickname': 'Oud Lover'},
        {'currentTier': 'titanium'},
        {'engagementScore': 101},
        {'engagementScore': -1},
        {'points': {'bonus': 10}},
        {'points': 'lots'},
        {'points': {'available': 20000}},
        {'preferences': {'language': 'fr'}},
        {'preferences': {'communicationMethod': 'fax'}},
        {'status': {'isActive': 'yes'}},
        {'spending': {'lastPurchaseDate': 'yesterday'}},
        {'achievements': [{'name': 'No id'}]},
    ])
    def test_invalid_updates_rejected(self, app, gold_profile, updates):
        """Unknown keys and bad values raise ValidationError."""
        with app.app_context():
            with pytest.raises(ValidationError):
                LoyaltyProfileService().update_profile(gold_profile, updates)

            profile = load(gold_profile)
            assert profile.current_tier == 'gold'
            assert profile.engagement_score == 85
            assert profile.points_available == 12000

    def test_missing_profile(self, app):
        """Updating an unknown customer raises ProfileNotFoundError."""
        with app.app_context():
            with pytest.raises(ProfileNotFoundError):
                LoyaltyProfileService().update_profile('cust_missing', {'engagementScore': 1})


class TestProcessDegradations:

    def test_downgrades_expired_profiles(self, app, profile_factory):
        """Lapsed profiles are downgraded and near-expiry ones warned."""
        profile_factory('cust_lapsed', current_tier='gold', tier_expiry=NOW - relativedelta(months=3))
        profile_factory('cust_current', current_tier='gold', tier_expiry=NOW + relativedelta(months=6))
        profile_factory('cust_warned', current_tier='silver', tier_expiry=NOW + relativedelta(weeks=2))

        with app.app_context():
            result = LoyaltyProfileService().process_degradations(now=NOW)

            assert result['processed'] == 3
            assert result['downgraded'] == 1
            assert result['warnings'] == 1
            assert result['errors'] == []

            assert load('cust_lapsed').current_tier == 'silver'
            assert load('cust_current').current_tier == 'gold'
            log = TierChangeLog.query.filter_by(customer_id='cust_lapsed').one()
            assert log.change_type == 'downgrade'

    def test_renewal_persists_bonus(self, app, profile_factory):
        """A renewal saves the bonus and resets period spending."""
        profile_factory(
            'cust_loyal',
            current_tier='silver',
            current_period_spending=Decimal('3000'),
            transaction_count=12,
            tier_expiry=NOW - relativedelta(months=2),
        )
        with app.app_context():
            result = LoyaltyProfileService().process_degradations(now=NOW)

            assert result['renewed'] == 1
            profile = load('cust_loyal')
            assert profile.current_tier == 'silver'
            assert profile.points_available == 200
            assert profile.current_period_spending == Decimal('0')
            assert LoyaltyTransaction.query.filter_by(customer_id='cust_loyal').count() == 1

    def test_dry_run_changes_nothing(self, app, profile_factory):
        """A dry run counts outcomes without saving them."""
        profile_factory('cust_lapsed', current_tier='platinum', tier_expiry=NOW - relativedelta(months=6))
        with app.app_context():
            result = LoyaltyProfileService().process_degradations(dry_run=True, now=NOW)

            assert result['downgraded'] == 1
            assert load('cust_lapsed').current_tier == 'platinum'
            assert TierChangeLog.query.count() == 0
