"""
Tests for the tier catalog.

Covers:
- Reference data (five tiers, ordering, constants)
- Lookups (get_tier, get_next_tier, lowest/highest)
- Self-validation of custom catalogs
- Wire serialization
"""
from dataclasses import replace
from decimal import Decimal

import pytest

from oud_loyalty.services.tier_catalog import (
    DEFAULT_TIERS,
    DegradationRules,
    TierCatalog,
    catalog,
    get_next_tier,
    get_tier,
)
from oud_loyalty.utils.exceptions import ConfigurationError


class TestReferenceData:

    def test_five_tiers_in_level_order(self):
        """The catalog has five tiers ordered by level."""
        assert [t.id for t in catalog.all_tiers()] == ['bronze', 'silver', 'gold', 'platinum', 'diamond']
        assert [t.level for t in catalog] == [1, 2, 3, 4, 5]

    def test_thresholds_increase_with_level(self):
        """Higher tiers require more and multiply at least as much."""
        tiers = catalog.all_tiers()
        for lower, higher in zip(tiers, tiers[1:]):
            assert higher.requirements.min_spending > lower.requirements.min_spending
            assert higher.requirements.min_transactions > lower.requirements.min_transactions
            assert higher.benefits.points_multiplier >= lower.benefits.points_multiplier

    def test_gold_tier_values(self):
        """Gold carries the expected thresholds and benefits."""
        gold = get_tier('gold')
        assert gold.requirements.min_spending == Decimal('7500')
        assert gold.requirements.min_transactions == 25
        assert gold.requirements.additional_criteria.referrals == 2
        assert gold.benefits.points_multiplier == Decimal('1.5')
        assert gold.benefits.birthday_bonus == 300
        assert gold.cashback.max_monthly == Decimal('150')
        assert 'Premium Oud' in gold.cashback.categories
        assert gold.degradation_rules.downgrade_to == 'silver'

    def test_only_bronze_has_no_downgrade(self):
        """Bronze is the only tier without a downgrade target."""
        assert catalog.lowest_tier().id == 'bronze'
        assert catalog.lowest_tier().degradation_rules.downgrade_to is None
        for tier in catalog.all_tiers()[1:]:
            assert tier.degradation_rules.downgrade_to is not None

    def test_diamond_has_longer_validity(self):
        """Diamond status lasts 24 months."""
        assert get_tier('diamond').validity_months == 24
        assert catalog.highest_tier().id == 'diamond'

    def test_special_categories_only_on_gold_and_platinum(self):
        """Only gold and platinum have cashback category lists."""
        special = [t.id for t in catalog if t.has_special_categories]
        assert special == ['gold', 'platinum']


class TestLookups:

    def test_get_tier_unknown_returns_none(self):
        """Unknown or missing ids return None."""
        assert get_tier('titanium') is None
        assert catalog.get_tier(None) is None

    def test_get_next_tier(self):
        """get_next_tier returns the tier one level up."""
        assert get_next_tier(1).id == 'silver'
        assert get_next_tier(4).id == 'diamond'

    def test_get_next_tier_at_top_is_none(self):
        """There is no tier above diamond."""
        assert get_next_tier(5) is None

    def test_len(self):
        """len() counts the tiers."""
        assert len(catalog) == 5


class TestCatalogValidation:

    def test_empty_catalog_rejected(self):
        """An empty catalog is a configuration error."""
        with pytest.raises(ConfigurationError):
            TierCatalog([])

    def test_duplicate_ids_rejected(self):
        """Tier ids must be unique."""
        silver = get_tier('silver')
        duplicate = replace(silver, level=3)
        with pytest.raises(ConfigurationError):
            TierCatalog([get_tier('bronze'), silver, duplicate])

    def test_gap_in_levels_rejected(self):
        """Levels must be dense from 1."""
        with pytest.raises(ConfigurationError, match='dense'):
            TierCatalog([get_tier('bronze'), get_tier('gold')])

    def test_multiplier_below_one_rejected(self):
        """Points multipliers must be at least 1.0."""
        bronze = get_tier('bronze')
        cheap = replace(bronze, benefits=replace(bronze.benefits, points_multiplier=Decimal('0.5')))
        with pytest.raises(ConfigurationError, match='multiplier'):
            TierCatalog([cheap])

    def test_downgrade_to_higher_tier_rejected(self):
        """downgrade_to must point at a lower tier."""
        bronze, silver = get_tier('bronze'), get_tier('silver')
        broken = replace(silver, degradation_rules=DegradationRules(2, 1, downgrade_to='silver'))
        with pytest.raises(ConfigurationError):
            TierCatalog([bronze, broken])

    def test_second_tier_without_downgrade_rejected(self):
        """Only one tier may lack a downgrade target."""
        bronze, silver = get_tier('bronze'), get_tier('silver')
        orphan = replace(silver, degradation_rules=DegradationRules(2, 1))
        with pytest.raises(ConfigurationError, match='downgrade'):
            TierCatalog([bronze, orphan])

    def test_default_tiers_validate(self):
        """The built-in tiers pass validation."""
        assert len(TierCatalog(list(DEFAULT_TIERS))) == 5


class TestSerialization:

    def test_to_dict_uses_camel_case(self):
        """to_dict renders camelCase keys and plain numbers."""
        data = get_tier('gold').to_dict()
        assert data['nameArabic']
        assert data['requirements']['minSpending'] == 7500
        assert data['benefits']['pointsMultiplier'] == 1.5
        assert data['cashback']['maxMonthly'] == 150
        assert data['degradationRules']['downgradeTo'] == 'silver'

    def test_to_dict_without_rules(self):
        """include_rules=False hides degradation and validity data."""
        data = get_tier('gold').to_dict(include_rules=False)
        assert 'degradationRules' not in data
        assert 'validityMonths' not in data
        assert 'seasonalBenefits' in data

    def test_unset_criteria_omitted(self):
        """Unset additional criteria are left out."""
        data = get_tier('gold').to_dict()
        assert data['requirements']['additionalCriteria'] == {'referrals': 2}
