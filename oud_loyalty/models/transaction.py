"""
Loyalty ledger models.

LoyaltyTransaction rows are append-only: once a row reaches a terminal
status it can no longer be updated (enforced by a before_update hook).
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import event, inspect, select
from ..extensions import db
from ..utils.exceptions import InvalidStatusTransitionError


# ==================== Enums ====================

class LoyaltyTransactionType(str, Enum):
    """Types of loyalty transactions."""
    EARN = 'earn'           # Points earned from a purchase (positive)
    REDEEM = 'redeem'       # Points redeemed (negative)
    BONUS = 'bonus'         # Birthday, referral, tier upgrade, renewal (positive)
    PENALTY = 'penalty'     # Manual deduction (negative)
    TRANSFER = 'transfer'   # Moved between customers (+/-)
    EXPIRE = 'expire'       # Points expired (negative)


class LoyaltyTransactionSource(str, Enum):
    """Where a transaction came from."""
    PURCHASE = 'purchase'
    BONUS = 'bonus'
    REFERRAL = 'referral'
    REVIEW = 'review'
    SOCIAL = 'social'
    BIRTHDAY = 'birthday'
    WELCOME = 'welcome'
    MANUAL = 'manual'


class LoyaltyTransactionStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    CANCELLED = 'cancelled'
    EXPIRED = 'expired'


TERMINAL_STATUSES = {
    LoyaltyTransactionStatus.APPROVED.value,
    LoyaltyTransactionStatus.CANCELLED.value,
    LoyaltyTransactionStatus.EXPIRED.value,
}


def generate_transaction_id(prefix: str) -> str:
    """earn_3f2a..., redeem_9b1c..., upgrade_..."""
    return f'{prefix}_{uuid.uuid4().hex[:16]}'


# ==================== Models ====================

class LoyaltyTransaction(db.Model):
    """
    Immutable ledger entry, one per processed action.

    points is signed: positive for earn/bonus, negative for redeem.
    metadata carries correlation fields (transactionId, orderId,
    campaignId, referralId, expiresAt, tierAtTime, ...).
    """
    __tablename__ = 'loyalty_transactions'

    id = db.Column(db.String(64), primary_key=True)
    customer_id = db.Column(
        db.String(64),
        db.ForeignKey('loyalty_profiles.customer_id'),
        nullable=False,
        index=True
    )

    transaction_type = db.Column('type', db.String(20), nullable=False)
    points = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.Numeric(12, 2))  # Purchase amount that generated points

    description = db.Column(db.String(500), nullable=False)
    description_arabic = db.Column(db.String(500))
    source = db.Column(db.String(20), nullable=False)

    # 'metadata' is reserved on declarative models
    extra_data = db.Column('metadata', db.JSON, default=dict)

    status = db.Column(db.String(20), nullable=False, default=LoyaltyTransactionStatus.APPROVED.value)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    processed_at = db.Column(db.DateTime)
    expires_at = db.Column(db.DateTime)

    def __repr__(self):
        return f'<LoyaltyTransaction {self.id}: {self.points} pts for {self.customer_id}>'

    @classmethod
    def approved(
        cls,
        prefix: str,
        customer_id: str,
        transaction_type: LoyaltyTransactionType,
        points: int,
        source: LoyaltyTransactionSource,
        description: str,
        description_arabic: str = None,
        amount=None,
        metadata: dict = None,
        expires_at: datetime = None,
        now: datetime = None
    ) -> 'LoyaltyTransaction':
        """Build an already-approved ledger entry (not yet added to the session)."""
        now = now or datetime.utcnow()
        return cls(
            id=generate_transaction_id(prefix),
            customer_id=customer_id,
            transaction_type=transaction_type.value,
            points=points,
            amount=amount,
            description=description,
            description_arabic=description_arabic,
            source=source.value,
            extra_data={k: v for k, v in (metadata or {}).items() if v is not None},
            status=LoyaltyTransactionStatus.APPROVED.value,
            created_at=now,
            processed_at=now,
            expires_at=expires_at,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self):
        data = {
            'id': self.id,
            'customerId': self.customer_id,
            'type': self.transaction_type,
            'points': self.points,
            'description': self.description,
            'source': self.source,
            'metadata': dict(self.extra_data or {}),
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'processedAt': self.processed_at.isoformat() if self.processed_at else None,
        }
        if self.amount is not None:
            data['amount'] = float(self.amount)
        if self.description_arabic:
            data['descriptionArabic'] = self.description_arabic
        if self.expires_at:
            data['expiresAt'] = self.expires_at.isoformat()
        return data


@event.listens_for(LoyaltyTransaction, 'before_update')
def _guard_terminal_transactions(mapper, connection, target):
    """Reject updates to ledger rows that already reached a terminal status."""
    history = inspect(target).attrs.status.history
    if history.deleted:
        previous_status = history.deleted[0]
    else:
        # Old value is not loaded when an expired attribute is overwritten
        table = LoyaltyTransaction.__table__
        previous_status = connection.execute(
            select(table.c.status).where(table.c.id == target.id)
        ).scalar()
    if previous_status in TERMINAL_STATUSES:
        raise InvalidStatusTransitionError('loyalty transaction', previous_status, target.status)


class CashbackAccrual(db.Model):
    """
    Cashback granted to a customer in a calendar month.

    Lets the cashback calculator cap against the remaining monthly budget
    instead of per call.
    """
    __tablename__ = 'loyalty_cashback_accruals'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(
        db.String(64),
        db.ForeignKey('loyalty_profiles.customer_id'),
        nullable=False
    )
    period = db.Column(db.String(7), nullable=False)  # YYYY-MM
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('customer_id', 'period', name='uq_cashback_customer_period'),
    )

    def __repr__(self):
        return f'<CashbackAccrual {self.customer_id} {self.period}: {self.amount}>'


class TierChangeLog(db.Model):
    """Audit trail of tier upgrades and downgrades."""
    __tablename__ = 'loyalty_tier_changes'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(
        db.String(64),
        db.ForeignKey('loyalty_profiles.customer_id'),
        nullable=False,
        index=True
    )
    previous_tier = db.Column(db.String(20))
    new_tier = db.Column(db.String(20), nullable=False)
    change_type = db.Column(db.String(20), nullable=False)  # upgrade, downgrade, manual
    reason = db.Column(db.String(200))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<TierChangeLog {self.customer_id}: {self.previous_tier} -> {self.new_tier}>'

    def to_dict(self):
        return {
            'id': self.id,
            'customerId': self.customer_id,
            'previousTier': self.previous_tier,
            'newTier': self.new_tier,
            'changeType': self.change_type,
            'reason': self.reason,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
