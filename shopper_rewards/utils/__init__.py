"""
Utility modules for the shopper rewards service.
"""
from .logging_config import setup_logging, get_logger
from .errors import (
    ErrorCode,
    error_response,
    bad_request,
    unauthorized,
    not_found,
    conflict,
    internal_error,
    domain_error_response,
)
from .exceptions import (
    ShopperRewardsError,
    ValidationError,
    NotFoundError,
    QRCodeNotFoundError,
    CampaignNotFoundError,
    RewardNotFoundError,
    ConflictError,
    TokenAlreadyUsedError,
    DuplicateSubmissionError,
    QRGenerationError,
    PaymentGatewayError,
    ConfigurationError,
)
from .tokens import TokenKind, generate_token, hash_token, classify
