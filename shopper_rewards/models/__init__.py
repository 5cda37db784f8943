"""
Database models for the shopper rewards service.
QR redemption ledger, verified feedback, rewards and payment audit trail.
"""
from .campaign import Campaign, campaign_products
from .product import Product, ProductSKU
from .qr_code import QRCode
from .feedback import Feedback, Reward, Sentiment, RewardStatus
from .payment import PaymentTransaction, PaymentStatus

__all__ = [
    # Catalog (read by the core, managed elsewhere)
    'Campaign',
    'campaign_products',
    'Product',
    'ProductSKU',
    # Redemption ledger
    'QRCode',
    # Feedback & rewards
    'Feedback',
    'Reward',
    'Sentiment',
    'RewardStatus',
    # Payments
    'PaymentTransaction',
    'PaymentStatus',
]
