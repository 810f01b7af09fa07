"""
Points calculation.

Points = floor(floor(amount x 1% x 10) x tier multiplier [x 1.5 special category])
"""
from decimal import Decimal, ROUND_FLOOR
from typing import Union

from ..utils.exceptions import ValidationError
from .tier_catalog import TierCatalog, catalog as default_catalog

# 1% of spend, expressed as 10 points per percent
BASE_EARNING_RATE = Decimal('0.01')
POINTS_PER_PERCENT = 10

SPECIAL_CATEGORY_MULTIPLIER = Decimal('1.5')

Number = Union[int, float, Decimal, str]


def to_decimal(value: Number) -> Decimal:
    """Money from JSON arrives as int/float; go through str to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def base_points(amount: Number) -> int:
    return _floor(to_decimal(amount) * BASE_EARNING_RATE * POINTS_PER_PERCENT)


def compute_points_earned(
    amount: Number,
    tier_id: str,
    is_special_category: bool = False,
    tier_catalog: TierCatalog = None
) -> int:
    """
    Points earned for a purchase.

    Unknown tiers earn the base rate with no multiplier rather than failing
    the purchase. The special-category bonus only applies to tiers that
    define an enhanced cashback category list.

    Raises:
        ValidationError: amount is negative
    """
    amount = to_decimal(amount)
    if amount < 0:
        raise ValidationError('Amount must not be negative', field='amount')

    tier = (tier_catalog or default_catalog).get_tier(tier_id)
    points = base_points(amount)
    if not tier:
        return points

    multiplied = points * tier.benefits.points_multiplier
    if is_special_category and tier.has_special_categories:
        multiplied *= SPECIAL_CATEGORY_MULTIPLIER

    return _floor(multiplied)
