"""
Custom exceptions for shopper rewards business logic.

Services raise these; the API layer translates them into HTTP responses
(see utils/errors.py). Messages are written to be shown to the caller.
"""


class ShopperRewardsError(Exception):
    """Base exception for all shopper rewards business logic errors."""

    def __init__(self, message: str, code: str = "SHOPPER_REWARDS_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(ShopperRewardsError):
    """Invalid input data. Recoverable by resubmitting corrected input."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class NotFoundError(ShopperRewardsError):
    """Resource not found."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        code = resource.upper().replace(' ', '_')
        super().__init__(message, f"{code}_NOT_FOUND")


class QRCodeNotFoundError(NotFoundError):
    """QR code not found. The identifier is never echoed back, it may be a secret token."""

    def __init__(self):
        super().__init__("QR code")


class CampaignNotFoundError(NotFoundError):
    """Campaign not found."""

    def __init__(self, identifier=None):
        super().__init__("Campaign", identifier)


class RewardNotFoundError(NotFoundError):
    """Reward not found."""

    def __init__(self, identifier=None):
        super().__init__("Reward", identifier)


class ConflictError(ShopperRewardsError):
    """Request conflicts with current state. Not retryable with the same input."""

    def __init__(self, message: str, code: str = "STATE_CONFLICT"):
        super().__init__(message, code)


class TokenAlreadyUsedError(ConflictError):
    """The QR code has already been redeemed."""

    def __init__(self):
        super().__init__("QR code has already been used", "TOKEN_ALREADY_USED")


class DuplicateSubmissionError(ConflictError):
    """This phone number already submitted feedback for the campaign."""

    def __init__(self):
        super().__init__(
            "Feedback has already been submitted for this campaign from this phone number",
            "DUPLICATE_SUBMISSION"
        )


class QRGenerationError(ShopperRewardsError):
    """A generation run produced no codes at all."""

    def __init__(self, message: str, results=None):
        self.results = results or []
        super().__init__(message, "QR_GENERATION_FAILED")


class PaymentGatewayError(ShopperRewardsError):
    """Error communicating with the mobile-money gateway."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "PAYMENT_GATEWAY_ERROR")


class ConfigurationError(ShopperRewardsError):
    """Application configuration error."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")
