"""
Loyalty tier catalog.

Static, ordered reference data for the Bronze -> Diamond program. Tiers are
frozen dataclasses so the catalog can be shared freely between requests.

The catalog validates itself on construction:
- levels form a dense sequence starting at 1
- exactly one tier (the lowest) has no downgrade target
- every downgrade target is an existing, lower tier
- points multipliers are >= 1.0
"""
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple

from ..utils.exceptions import ConfigurationError


@dataclass(frozen=True)
class AdditionalCriteria:
    referrals: Optional[int] = None
    reviews: Optional[int] = None
    social_engagement: Optional[int] = None


@dataclass(frozen=True)
class TierRequirements:
    min_spending: Decimal
    min_transactions: int
    timeframe_months: int = 12
    additional_criteria: Optional[AdditionalCriteria] = None


@dataclass(frozen=True)
class TierBenefits:
    points_multiplier: Decimal
    discount_percentage: int
    free_shipping: bool
    early_access: bool
    exclusive_products: bool
    personal_shopper: bool
    priority_support: bool
    birthday_bonus: int
    welcome_bonus: int
    renewal_bonus: int


@dataclass(frozen=True)
class TierPrivileges:
    free_gift_wrapping: bool
    free_product_samples: bool
    invite_only_events: bool
    vip_lounge: bool
    concierge_service: bool
    custom_engraving: bool
    extended_returns: int  # days
    price_matching: bool


@dataclass(frozen=True)
class SeasonalBenefits:
    ramadan_bonus: int
    eid_special_discount: int
    national_day_promo: int
    black_friday_early_access: bool


@dataclass(frozen=True)
class CashbackRule:
    enabled: bool
    percentage: Decimal
    max_monthly: Decimal
    categories: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DegradationRules:
    warning_months: int
    grace_period_months: int
    downgrade_to: Optional[str] = None


@dataclass(frozen=True)
class LoyaltyTier:
    """A single rung of the loyalty ladder."""
    id: str
    name: str
    name_arabic: str
    level: int
    color: str
    icon: str
    requirements: TierRequirements
    benefits: TierBenefits
    privileges: TierPrivileges
    seasonal_benefits: SeasonalBenefits
    cashback: CashbackRule
    validity_months: int
    degradation_rules: DegradationRules

    @property
    def has_special_categories(self) -> bool:
        return bool(self.cashback.categories)

    def to_dict(self, include_rules: bool = True) -> Dict[str, Any]:
        data = _camelize(asdict(self))
        if not include_rules:
            data.pop('validityMonths', None)
            data.pop('degradationRules', None)
        return data


def _camel(key: str) -> str:
    head, *rest = key.split('_')
    return head + ''.join(part.title() for part in rest)


def _camelize(value):
    """Convert asdict() output into the JSON shape used on the wire."""
    if isinstance(value, dict):
        return {
            _camel(k): _camelize(v)
            for k, v in value.items()
            if v is not None
        }
    if isinstance(value, (list, tuple)):
        return [_camelize(v) for v in value]
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


# ==================== Reference Data ====================

DEFAULT_TIERS: List[LoyaltyTier] = [
    LoyaltyTier(
        id='bronze',
        name='Bronze Member',
        name_arabic='عضو برونزي',
        level=1,
        color='#CD7F32',
        icon='🥉',
        requirements=TierRequirements(
            min_spending=Decimal('0'),
            min_transactions=0,
            timeframe_months=12,
        ),
        benefits=TierBenefits(
            points_multiplier=Decimal('1.0'),
            discount_percentage=0,
            free_shipping=False,
            early_access=False,
            exclusive_products=False,
            personal_shopper=False,
            priority_support=False,
            birthday_bonus=50,
            welcome_bonus=100,
            renewal_bonus=0,
        ),
        privileges=TierPrivileges(
            free_gift_wrapping=False,
            free_product_samples=True,
            invite_only_events=False,
            vip_lounge=False,
            concierge_service=False,
            custom_engraving=False,
            extended_returns=7,
            price_matching=False,
        ),
        seasonal_benefits=SeasonalBenefits(
            ramadan_bonus=100,
            eid_special_discount=5,
            national_day_promo=5,
            black_friday_early_access=False,
        ),
        cashback=CashbackRule(enabled=False, percentage=Decimal('0'), max_monthly=Decimal('0')),
        validity_months=12,
        degradation_rules=DegradationRules(warning_months=2, grace_period_months=1),
    ),
    LoyaltyTier(
        id='silver',
        name='Silver Member',
        name_arabic='عضو فضي',
        level=2,
        color='#C0C0C0',
        icon='🥈',
        requirements=TierRequirements(
            min_spending=Decimal('2500'),
            min_transactions=10,
            timeframe_months=12,
        ),
        benefits=TierBenefits(
            points_multiplier=Decimal('1.2'),
            discount_percentage=3,
            free_shipping=True,
            early_access=False,
            exclusive_products=False,
            personal_shopper=False,
            priority_support=True,
            birthday_bonus=150,
            welcome_bonus=300,
            renewal_bonus=200,
        ),
        privileges=TierPrivileges(
            free_gift_wrapping=True,
            free_product_samples=True,
            invite_only_events=False,
            vip_lounge=False,
            concierge_service=False,
            custom_engraving=False,
            extended_returns=14,
            price_matching=True,
        ),
        seasonal_benefits=SeasonalBenefits(
            ramadan_bonus=250,
            eid_special_discount=8,
            national_day_promo=8,
            black_friday_early_access=True,
        ),
        cashback=CashbackRule(enabled=True, percentage=Decimal('1'), max_monthly=Decimal('50')),
        validity_months=12,
        degradation_rules=DegradationRules(warning_months=2, grace_period_months=1, downgrade_to='bronze'),
    ),
    LoyaltyTier(
        id='gold',
        name='Gold Member',
        name_arabic='عضو ذهبي',
        level=3,
        color='#FFD700',
        icon='🥇',
        requirements=TierRequirements(
            min_spending=Decimal('7500'),
            min_transactions=25,
            timeframe_months=12,
            additional_criteria=AdditionalCriteria(referrals=2),
        ),
        benefits=TierBenefits(
            points_multiplier=Decimal('1.5'),
            discount_percentage=6,
            free_shipping=True,
            early_access=True,
            exclusive_products=True,
            personal_shopper=False,
            priority_support=True,
            birthday_bonus=300,
            welcome_bonus=600,
            renewal_bonus=500,
        ),
        privileges=TierPrivileges(
            free_gift_wrapping=True,
            free_product_samples=True,
            invite_only_events=True,
            vip_lounge=False,
            concierge_service=False,
            custom_engraving=True,
            extended_returns=30,
            price_matching=True,
        ),
        seasonal_benefits=SeasonalBenefits(
            ramadan_bonus=500,
            eid_special_discount=12,
            national_day_promo=12,
            black_friday_early_access=True,
        ),
        cashback=CashbackRule(
            enabled=True,
            percentage=Decimal('2'),
            max_monthly=Decimal('150'),
            categories=('Premium Oud', 'Luxury Perfumes'),
        ),
        validity_months=12,
        degradation_rules=DegradationRules(warning_months=2, grace_period_months=1, downgrade_to='silver'),
    ),
    LoyaltyTier(
        id='platinum',
        name='Platinum Member',
        name_arabic='عضو بلاتيني',
        level=4,
        color='#E5E4E2',
        icon='💎',
        requirements=TierRequirements(
            min_spending=Decimal('20000'),
            min_transactions=50,
            timeframe_months=12,
            additional_criteria=AdditionalCriteria(referrals=5, reviews=10),
        ),
        benefits=TierBenefits(
            points_multiplier=Decimal('2.0'),
            discount_percentage=10,
            free_shipping=True,
            early_access=True,
            exclusive_products=True,
            personal_shopper=True,
            priority_support=True,
            birthday_bonus=500,
            welcome_bonus=1200,
            renewal_bonus=1000,
        ),
        privileges=TierPrivileges(
            free_gift_wrapping=True,
            free_product_samples=True,
            invite_only_events=True,
            vip_lounge=True,
            concierge_service=True,
            custom_engraving=True,
            extended_returns=60,
            price_matching=True,
        ),
        seasonal_benefits=SeasonalBenefits(
            ramadan_bonus=1000,
            eid_special_discount=15,
            national_day_promo=15,
            black_friday_early_access=True,
        ),
        cashback=CashbackRule(
            enabled=True,
            percentage=Decimal('3'),
            max_monthly=Decimal('500'),
            categories=('Premium Oud', 'Luxury Perfumes', 'Accessories'),
        ),
        validity_months=12,
        degradation_rules=DegradationRules(warning_months=3, grace_period_months=2, downgrade_to='gold'),
    ),
    LoyaltyTier(
        id='diamond',
        name='Diamond Elite',
        name_arabic='النخبة الماسية',
        level=5,
        color='#B9F2FF',
        icon='💎✨',
        requirements=TierRequirements(
            min_spending=Decimal('50000'),
            min_transactions=100,
            timeframe_months=12,
            additional_criteria=AdditionalCriteria(referrals=10, reviews=25, social_engagement=100),
        ),
        benefits=TierBenefits(
            points_multiplier=Decimal('3.0'),
            discount_percentage=15,
            free_shipping=True,
            early_access=True,
            exclusive_products=True,
            personal_shopper=True,
            priority_support=True,
            birthday_bonus=1000,
            welcome_bonus=2500,
            renewal_bonus=2000,
        ),
        privileges=TierPrivileges(
            free_gift_wrapping=True,
            free_product_samples=True,
            invite_only_events=True,
            vip_lounge=True,
            concierge_service=True,
            custom_engraving=True,
            extended_returns=90,
            price_matching=True,
        ),
        seasonal_benefits=SeasonalBenefits(
            ramadan_bonus=2000,
            eid_special_discount=20,
            national_day_promo=20,
            black_friday_early_access=True,
        ),
        cashback=CashbackRule(enabled=True, percentage=Decimal('5'), max_monthly=Decimal('1000')),
        validity_months=24,  # Longer validity for top tier
        degradation_rules=DegradationRules(warning_months=6, grace_period_months=3, downgrade_to='platinum'),
    ),
]


class TierCatalog:
    """
    Read-only lookup over an ordered list of tiers.

    Usage:
        tier = catalog.get_tier('gold')
        next_tier = catalog.get_next_tier(tier.level)
    """

    def __init__(self, tiers: List[LoyaltyTier]):
        self._tiers = tuple(sorted(tiers, key=lambda t: t.level))
        self._by_id = {tier.id: tier for tier in self._tiers}
        self._by_level = {tier.level: tier for tier in self._tiers}
        self._validate()

    def _validate(self) -> None:
        if not self._tiers:
            raise ConfigurationError('Tier catalog is empty')

        if len(self._by_id) != len(self._tiers):
            raise ConfigurationError('Tier ids must be unique')

        levels = [tier.level for tier in self._tiers]
        if levels != list(range(1, len(levels) + 1)):
            raise ConfigurationError(f'Tier levels must be dense from 1, got {levels}')

        without_downgrade = [t.id for t in self._tiers if not t.degradation_rules.downgrade_to]
        if without_downgrade != [self._tiers[0].id]:
            raise ConfigurationError(
                f'Exactly the lowest tier may lack a downgrade target, got {without_downgrade}'
            )

        for tier in self._tiers:
            if tier.benefits.points_multiplier < 1:
                raise ConfigurationError(f'Tier {tier.id} has a points multiplier below 1.0')

            target_id = tier.degradation_rules.downgrade_to
            if target_id:
                target = self._by_id.get(target_id)
                if not target or target.level >= tier.level:
                    raise ConfigurationError(
                        f'Tier {tier.id} downgrades to unknown or non-lower tier {target_id}'
                    )

    def __iter__(self):
        return iter(self._tiers)

    def __len__(self):
        return len(self._tiers)

    def all_tiers(self) -> List[LoyaltyTier]:
        return list(self._tiers)

    def get_tier(self, tier_id: str) -> Optional[LoyaltyTier]:
        return self._by_id.get(tier_id)

    def get_next_tier(self, current_level: int) -> Optional[LoyaltyTier]:
        """Tier one level above current_level, or None at the top."""
        return self._by_level.get(current_level + 1)

    def lowest_tier(self) -> LoyaltyTier:
        return self._tiers[0]

    def highest_tier(self) -> LoyaltyTier:
        return self._tiers[-1]


catalog = TierCatalog(DEFAULT_TIERS)


def get_tier(tier_id: str) -> Optional[LoyaltyTier]:
    return catalog.get_tier(tier_id)


def get_next_tier(current_level: int) -> Optional[LoyaltyTier]:
    return catalog.get_next_tier(current_level)
