"""
Custom exceptions for loyalty business logic.

These exceptions provide more specific error handling than generic Exception,
allowing for better error messages and appropriate HTTP status codes.
"""


class LoyaltyError(Exception):
    """Base exception for all loyalty business logic errors."""

    status_code = 400

    def __init__(self, message: str, code: str = "LOYALTY_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(LoyaltyError):
    """Resource not found."""

    status_code = 404

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper().replace(' ', '_')}_NOT_FOUND")


class ProfileNotFoundError(NotFoundError):
    """Customer loyalty profile not found."""

    def __init__(self, identifier=None):
        super().__init__("Customer loyalty profile", identifier)
        self.code = "PROFILE_NOT_FOUND"


class ValidationError(LoyaltyError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class InvalidTierError(LoyaltyError):
    """Profile references a tier the catalog does not know."""

    def __init__(self, tier_id: str = None):
        self.tier_id = tier_id
        message = "Invalid tier"
        if tier_id:
            message = f"Invalid tier '{tier_id}'"
        super().__init__(message, "INVALID_TIER")


class InvalidActionError(LoyaltyError):
    """Unknown loyalty action."""

    def __init__(self, action: str = None):
        self.action = action
        super().__init__("Invalid action", "INVALID_ACTION")


class InsufficientBalanceError(LoyaltyError):
    """Not enough balance for the operation."""

    def __init__(self, current: float, required: float, currency: str = "credits"):
        self.current = current
        self.required = required
        message = f"Insufficient {currency}. Available: {current}, Required: {required}"
        super().__init__(message, "INSUFFICIENT_BALANCE")


class InsufficientPointsError(InsufficientBalanceError):
    """Not enough points for the operation."""

    def __init__(self, current: int, required: int):
        super().__init__(current, required, "points")
        self.code = "INSUFFICIENT_POINTS"


class InvalidStatusTransitionError(LoyaltyError):
    """Invalid status transition for a resource."""

    def __init__(self, resource: str, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        message = f"Cannot change {resource} status from '{from_status}' to '{to_status}'"
        super().__init__(message, "INVALID_STATUS_TRANSITION")


class ConfigurationError(LoyaltyError):
    """Application or reference data configuration error."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")
