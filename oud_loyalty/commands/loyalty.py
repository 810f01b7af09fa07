"""
CLI Commands for loyalty maintenance.

Tier degradation also runs from the scheduler; as a cron job:

# Tier degradation (run daily at 2 AM)
0 2 * * * cd /app && flask loyalty process-degradations
"""
from datetime import datetime
from decimal import Decimal

import click
from dateutil.relativedelta import relativedelta
from flask.cli import with_appcontext

from ..extensions import db
from ..models import CustomerLoyaltyProfile
from ..services.eligibility import refresh_progress
from ..services.profile_service import LoyaltyProfileService
from ..services.tier_catalog import catalog


DEMO_CUSTOMER_ID = 'cust_001'


@click.group('loyalty')
def loyalty_cli():
    """Loyalty program commands."""
    pass


@loyalty_cli.command('tiers')
def list_tiers():
    """Print the tier catalog."""
    for tier in catalog:
        requirements = tier.requirements
        benefits = tier.benefits
        click.echo(f"{tier.level}. {tier.name} ({tier.id}) - {tier.name_arabic}")
        click.echo(f"   Requires: AED {requirements.min_spending:,} spend, "
                   f"{requirements.min_transactions} transactions")
        click.echo(f"   Earns: x{benefits.points_multiplier} points, "
                   f"{benefits.discount_percentage}% discount, "
                   f"{tier.cashback.percentage}% cashback (max AED {tier.cashback.max_monthly}/month)")
        if tier.degradation_rules.downgrade_to:
            click.echo(f"   Valid {tier.validity_months} months, "
                       f"downgrades to {tier.degradation_rules.downgrade_to}")


@loyalty_cli.command('process-degradations')
@click.option('--dry-run', is_flag=True, help='Preview without changing any tier')
@with_appcontext
def process_degradations(dry_run):
    """
    Check tier expiry for every profile.

    Renews tiers whose requirements are still met after the grace period
    and downgrades the rest one level.
    """
    result = LoyaltyProfileService().process_degradations(dry_run=dry_run)

    prefix = '[DRY RUN] ' if dry_run else ''
    click.echo(f"\n{prefix}Tier degradation")
    click.echo(f"  Processed: {result['processed']} profiles")
    click.echo(f"  Warning period: {result['warnings']}")
    click.echo(f"  Grace period: {result['grace']}")
    click.echo(f"  Renewed: {result['renewed']}")
    click.echo(f"  Downgraded: {result['downgraded']}")

    if result['errors']:
        click.echo(f"  Errors: {len(result['errors'])}")
        for error in result['errors'][:5]:
            click.echo(f"    - {error['customer_id']}: {error['error']}")


@loyalty_cli.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create the cust_001 demo profile (Gold member) if it does not exist."""
    if CustomerLoyaltyProfile.query.filter_by(customer_id=DEMO_CUSTOMER_ID).first():
        click.echo(f"Profile {DEMO_CUSTOMER_ID} already exists")
        return

    now = datetime.utcnow()
    profile = CustomerLoyaltyProfile(
        customer_id=DEMO_CUSTOMER_ID,
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
        is_active=True,
        tier_expiry=now + relativedelta(months=catalog.get_tier('gold').validity_months),
        last_activity=datetime(2024, 6, 25, 10, 30),
        achievements=[
            {'id': 'first_purchase', 'name': 'First Purchase', 'unlockedAt': '2024-01-15T00:00:00', 'points': 100},
            {'id': 'tier_gold', 'name': 'Gold Member', 'unlockedAt': '2024-05-01T00:00:00', 'points': 600},
        ],
        total_referred=3,
        successful_referrals=2,
        referral_bonus=600,
        communication_method='email',
        language='en',
        marketing_consent=True,
        preferred_categories=['Premium Oud', 'Floral'],
        engagement_score=85,
        created_at=datetime(2024, 1, 15),
    )
    refresh_progress(profile)

    db.session.add(profile)
    db.session.commit()
    click.echo(f"Created demo profile {DEMO_CUSTOMER_ID} ({profile.current_tier}, "
               f"{profile.points_available} points available)")


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(loyalty_cli)
