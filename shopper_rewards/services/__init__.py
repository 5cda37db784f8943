"""
Business logic services for the shopper rewards service.
"""
from .redemption_ledger import RedemptionLedger
from .qr_service import QRService, QRGenerationResult
from .feedback_validation import FeedbackSubmission
from .redemption_service import RedemptionService, RedemptionOutcome
from .safaricom_service import (
    PaymentGateway,
    PaymentRequest,
    PaymentResult,
    SafaricomB2CClient,
    get_payment_gateway,
)
from .reward_dispatcher import RewardDispatcher

__all__ = [
    'RedemptionLedger',
    'QRService',
    'QRGenerationResult',
    'FeedbackSubmission',
    'RedemptionService',
    'RedemptionOutcome',
    'PaymentGateway',
    'PaymentRequest',
    'PaymentResult',
    'SafaricomB2CClient',
    'get_payment_gateway',
    'RewardDispatcher',
]
