"""
Utility modules for the Oud loyalty engine.
"""
from .logging_config import setup_logging
from .errors import (
    ErrorCode,
    error_response,
    bad_request,
    not_found,
    internal_error,
    loyalty_error_response
)
from .exceptions import (
    LoyaltyError,
    NotFoundError,
    ProfileNotFoundError,
    ValidationError,
    InvalidTierError,
    InvalidActionError,
    InsufficientBalanceError,
    InsufficientPointsError,
    InvalidStatusTransitionError,
    ConfigurationError
)
