"""
Cashback calculation.

Cashback = min(amount x tier rate [x 1.5 special category], remaining monthly budget)
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from ..utils.exceptions import ValidationError
from .points_calculator import Number, SPECIAL_CATEGORY_MULTIPLIER, to_decimal
from .tier_catalog import TierCatalog, catalog as default_catalog

ZERO = Decimal('0')
CENT = Decimal('0.01')


def compute_cashback(
    amount: Number,
    tier_id: str,
    purchase_categories: Optional[Iterable[str]] = None,
    accrued_this_month: Number = ZERO,
    tier_catalog: TierCatalog = None
) -> Decimal:
    """
    Cashback for a purchase, capped by what is left of the tier's monthly cap.

    With accrued_this_month left at 0 the cap applies per call.

    Raises:
        ValidationError: amount is negative
    """
    amount = to_decimal(amount)
    if amount < 0:
        raise ValidationError('Amount must not be negative', field='amount')

    tier = (tier_catalog or default_catalog).get_tier(tier_id)
    if not tier or not tier.cashback.enabled:
        return ZERO

    rate = tier.cashback.percentage / 100
    if tier.has_special_categories:
        categories = set(purchase_categories or [])
        if categories & set(tier.cashback.categories):
            rate *= SPECIAL_CATEGORY_MULTIPLIER

    remaining = max(tier.cashback.max_monthly - to_decimal(accrued_this_month), ZERO)
    cashback = min(amount * rate, remaining)
    return cashback.quantize(CENT, rounding=ROUND_HALF_UP)
