"""
Database models for the Oud loyalty engine.
"""
from .profile import CustomerLoyaltyProfile
from .transaction import (
    LoyaltyTransactionType,
    LoyaltyTransactionSource,
    LoyaltyTransactionStatus,
    TERMINAL_STATUSES,
    LoyaltyTransaction,
    CashbackAccrual,
    TierChangeLog,
    generate_transaction_id,
)

__all__ = [
    'CustomerLoyaltyProfile',
    'LoyaltyTransactionType',
    'LoyaltyTransactionSource',
    'LoyaltyTransactionStatus',
    'TERMINAL_STATUSES',
    'LoyaltyTransaction',
    'CashbackAccrual',
    'TierChangeLog',
    'generate_transaction_id',
]
