"""
Customer loyalty profile model.
"""
from datetime import datetime
from decimal import Decimal
from ..extensions import db


def _iso(value):
    return value.isoformat() if value else None


class CustomerLoyaltyProfile(db.Model):
    """
    One loyalty profile per customer.

    Profiles are created outside the engine (the customer module owns
    sign-up) and are only mutated through the loyalty processor or the
    profile update endpoint. Points/spending groups are stored as flat
    columns and re-nested in to_dict().
    """
    __tablename__ = 'loyalty_profiles'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    current_tier = db.Column(db.String(20), nullable=False, default='bronze')

    # Points (available <= total; total/lifetime only ever grow)
    points_total = db.Column(db.Integer, nullable=False, default=0)
    points_available = db.Column(db.Integer, nullable=False, default=0)
    points_pending = db.Column(db.Integer, nullable=False, default=0)
    points_expired = db.Column(db.Integer, nullable=False, default=0)
    points_lifetime = db.Column(db.Integer, nullable=False, default=0)

    # Spending
    total_lifetime_spending = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    current_period_spending = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    average_order_value = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    last_purchase_date = db.Column(db.DateTime)
    transaction_count = db.Column(db.Integer, nullable=False, default=0)

    # Status
    is_active = db.Column(db.Boolean, default=True)
    next_tier = db.Column(db.String(20))
    spending_needed = db.Column(db.Numeric(12, 2), default=Decimal('0'))
    transactions_needed = db.Column(db.Integer, default=0)
    progress_percentage = db.Column(db.Float, default=0.0)
    tier_expiry = db.Column(db.DateTime)
    last_activity = db.Column(db.DateTime, default=datetime.utcnow)

    # Append-only list of {id, name, unlockedAt, points}
    achievements = db.Column(db.JSON, default=list)

    # Referrals
    total_referred = db.Column(db.Integer, nullable=False, default=0)
    successful_referrals = db.Column(db.Integer, nullable=False, default=0)
    referral_bonus = db.Column(db.Integer, nullable=False, default=0)

    # Preferences
    communication_method = db.Column(db.String(20), default='email')  # email, sms, push, whatsapp
    language = db.Column(db.String(5), default='en')  # en, ar
    marketing_consent = db.Column(db.Boolean, default=False)
    preferred_categories = db.Column(db.JSON, default=list)

    engagement_score = db.Column(db.Integer, default=0)  # 0-100

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    transactions = db.relationship(
        'LoyaltyTransaction',
        backref='profile',
        lazy='dynamic',
        order_by='LoyaltyTransaction.created_at.desc()'
    )

    def __repr__(self):
        return f'<CustomerLoyaltyProfile {self.customer_id} ({self.current_tier})>'

    # ==================== Mutators ====================

    def credit_points(self, points: int, count_lifetime: bool = True) -> None:
        """Add points to total/available (and lifetime unless told otherwise)."""
        self.points_total = (self.points_total or 0) + points
        self.points_available = (self.points_available or 0) + points
        if count_lifetime:
            self.points_lifetime = (self.points_lifetime or 0) + points

    def debit_points(self, points: int) -> None:
        self.points_available = (self.points_available or 0) - points

    def record_purchase(self, amount: Decimal, when: datetime) -> None:
        self.total_lifetime_spending = (self.total_lifetime_spending or Decimal('0')) + amount
        self.current_period_spending = (self.current_period_spending or Decimal('0')) + amount
        self.transaction_count = (self.transaction_count or 0) + 1
        self.average_order_value = (
            self.total_lifetime_spending / self.transaction_count
        ).quantize(Decimal('0.01'))
        self.last_purchase_date = when
        self.last_activity = when

    def unlock_achievement(self, achievement_id: str, name: str, points: int, when: datetime) -> None:
        # Reassign so SQLAlchemy notices the JSON change
        self.achievements = list(self.achievements or []) + [{
            'id': achievement_id,
            'name': name,
            'unlockedAt': when.isoformat(),
            'points': points,
        }]

    # ==================== Serialization ====================

    def to_dict(self):
        return {
            'customerId': self.customer_id,
            'currentTier': self.current_tier,
            'points': {
                'total': self.points_total,
                'available': self.points_available,
                'pending': self.points_pending,
                'expired': self.points_expired,
                'lifetime': self.points_lifetime,
            },
            'spending': {
                'totalLifetime': float(self.total_lifetime_spending or 0),
                'currentPeriod': float(self.current_period_spending or 0),
                'averageOrderValue': float(self.average_order_value or 0),
                'lastPurchaseDate': _iso(self.last_purchase_date),
                'transactionCount': self.transaction_count,
            },
            'status': {
                'isActive': self.is_active,
                'nextTier': self.next_tier,
                'progressToNext': {
                    'spendingNeeded': float(self.spending_needed or 0),
                    'transactionsNeeded': self.transactions_needed or 0,
                    'percentage': self.progress_percentage or 0.0,
                },
                'tierExpiry': _iso(self.tier_expiry),
                'lastActivity': _iso(self.last_activity),
            },
            'achievements': list(self.achievements or []),
            'referrals': {
                'totalReferred': self.total_referred,
                'successfulReferrals': self.successful_referrals,
                'referralBonus': self.referral_bonus,
            },
            'preferences': {
                'communicationMethod': self.communication_method,
                'language': self.language,
                'marketingConsent': self.marketing_consent,
                'categories': list(self.preferred_categories or []),
            },
            'engagementScore': self.engagement_score,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def points_summary(self):
        return self.to_dict()['points']
