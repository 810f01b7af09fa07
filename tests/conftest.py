"""
Shared fixtures for the loyalty engine tests.

Every test gets a fresh in-memory SQLite database. Profile fixtures return
the customer_id; load the row inside app.app_context() where needed.
"""
from datetime import datetime
from decimal import Decimal

import pytest

from oud_loyalty import create_app
from oud_loyalty.extensions import db
from oud_loyalty.models import CustomerLoyaltyProfile
from oud_loyalty.services.eligibility import refresh_progress


PROFILE_DEFAULTS = {
    'current_tier': 'bronze',
    'points_total': 0,
    'points_available': 0,
    'points_pending': 0,
    'points_expired': 0,
    'points_lifetime': 0,
    'total_lifetime_spending': Decimal('0'),
    'current_period_spending': Decimal('0'),
    'average_order_value': Decimal('0'),
    'transaction_count': 0,
    'is_active': True,
    'achievements': [],
    'total_referred': 0,
    'successful_referrals': 0,
    'referral_bonus': 0,
    'communication_method': 'email',
    'language': 'en',
    'marketing_consent': False,
    'preferred_categories': [],
    'engagement_score': 0,
}


def create_profile(customer_id: str, **overrides) -> CustomerLoyaltyProfile:
    """Insert a profile; call inside an app context."""
    values = dict(PROFILE_DEFAULTS, customer_id=customer_id)
    values.update(overrides)
    profile = CustomerLoyaltyProfile(**values)
    refresh_progress(profile)
    db.session.add(profile)
    db.session.commit()
    return profile


@pytest.fixture
def app():
    """Application with a fresh schema per test."""
    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def profile_factory(app):
    """Create profiles with arbitrary overrides: profile_factory('cust_x', current_tier='gold')."""
    def factory(customer_id: str, **overrides) -> str:
        with app.app_context():
            return create_profile(customer_id, **overrides).customer_id
    return factory


@pytest.fixture
def bronze_profile(profile_factory):
    """New member with no activity."""
    return profile_factory('cust_bronze')


@pytest.fixture
def gold_profile(profile_factory):
    """Gold member modelled on the cust_001 demo profile."""
    return profile_factory(
        'cust_001',
        current_tier='gold',
        points_total=12500,
        points_available=12000,
        points_pending=300,
        points_expired=200,
        points_lifetime=25000,
        total_lifetime_spending=Decimal('15000'),
        current_period_spending=Decimal('8500'),
        average_order_value=Decimal('425'),
        last_purchase_date=datetime(2024, 6, 25),
        transaction_count=35,
        tier_expiry=datetime(2030, 1, 15),
        total_referred=3,
        successful_referrals=2,
        referral_bonus=600,
        marketing_consent=True,
        preferred_categories=['Premium Oud', 'Floral'],
        engagement_score=85,
    )
