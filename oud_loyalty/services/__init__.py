"""
Business logic services for the Oud loyalty engine.
"""
from .tier_catalog import TierCatalog, LoyaltyTier, catalog
from .points_calculator import compute_points_earned
from .cashback_calculator import compute_cashback
from .eligibility import check_eligibility, EligibilityResult
from .tier_progression import advance, evaluate_degradation, TierTransition
from .repository import LoyaltyRepository
from .loyalty_processor import LoyaltyProcessor
from .profile_service import LoyaltyProfileService

__all__ = [
    'TierCatalog',
    'LoyaltyTier',
    'catalog',
    'compute_points_earned',
    'compute_cashback',
    'check_eligibility',
    'EligibilityResult',
    'advance',
    'evaluate_degradation',
    'TierTransition',
    'LoyaltyRepository',
    'LoyaltyProcessor',
    'LoyaltyProfileService',
]
