"""
Persistence boundary for the loyalty engine.

The processor only talks to this class, so the storage can be swapped (or
faked in tests) without touching business rules. Everything staged through
the repository is applied by a single commit().
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import func

from ..extensions import db
from ..models import (
    CustomerLoyaltyProfile,
    LoyaltyTransaction,
    CashbackAccrual,
    TierChangeLog,
)


def cashback_period(when: datetime) -> str:
    return when.strftime('%Y-%m')


class LoyaltyRepository:
    """
    SQLAlchemy-backed repository.

    Usage:
        repo = LoyaltyRepository()
        profile = repo.get_profile('cust_001', for_update=True)
        repo.append_transaction(tx)
        repo.save_profile(profile)
        repo.commit()
    """

    def __init__(self, session=None):
        self.session = session or db.session

    # ==================== Profiles ====================

    def get_profile(self, customer_id: str, for_update: bool = False) -> Optional[CustomerLoyaltyProfile]:
        """
        Load a profile. for_update takes a row lock (SELECT ... FOR UPDATE)
        on backends that support it so concurrent requests for the same
        customer serialize.
        """
        if not customer_id:
            return None
        query = CustomerLoyaltyProfile.query.filter_by(customer_id=customer_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def save_profile(self, profile: CustomerLoyaltyProfile) -> None:
        self.session.add(profile)

    def iter_profiles_with_expiry(self) -> List[CustomerLoyaltyProfile]:
        return CustomerLoyaltyProfile.query.filter(
            CustomerLoyaltyProfile.tier_expiry.isnot(None),
            CustomerLoyaltyProfile.is_active.is_(True)
        ).order_by(CustomerLoyaltyProfile.id).all()

    # ==================== Ledger ====================

    def append_transaction(self, transaction: LoyaltyTransaction) -> None:
        self.session.add(transaction)

    def list_transactions(self, customer_id: str, limit: int = 50) -> List[LoyaltyTransaction]:
        return LoyaltyTransaction.query.filter_by(
            customer_id=customer_id
        ).order_by(
            LoyaltyTransaction.created_at.desc()
        ).limit(limit).all()

    def log_tier_change(self, customer_id: str, previous_tier: str, new_tier: str,
                        change_type: str, reason: str = None) -> TierChangeLog:
        log = TierChangeLog(
            customer_id=customer_id,
            previous_tier=previous_tier,
            new_tier=new_tier,
            change_type=change_type,
            reason=reason
        )
        self.session.add(log)
        return log

    # ==================== Cashback Accrual ====================

    def get_cashback_accrued(self, customer_id: str, when: datetime) -> Decimal:
        accrual = CashbackAccrual.query.filter_by(
            customer_id=customer_id,
            period=cashback_period(when)
        ).first()
        return accrual.amount if accrual else Decimal('0')

    def add_cashback_accrual(self, customer_id: str, amount: Decimal, when: datetime) -> None:
        if amount <= 0:
            return
        period = cashback_period(when)
        accrual = CashbackAccrual.query.filter_by(customer_id=customer_id, period=period).first()
        if accrual:
            accrual.amount = (accrual.amount or Decimal('0')) + amount
        else:
            self.session.add(CashbackAccrual(customer_id=customer_id, period=period, amount=amount))

    # ==================== Aggregates ====================

    def count_profiles(self) -> int:
        return self.session.query(func.count(CustomerLoyaltyProfile.id)).scalar() or 0

    def total_points_issued(self) -> int:
        issued = self.session.query(
            func.coalesce(func.sum(LoyaltyTransaction.points), 0)
        ).filter(
            LoyaltyTransaction.points > 0
        ).scalar()
        return int(issued or 0)

    # ==================== Unit of Work ====================

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
