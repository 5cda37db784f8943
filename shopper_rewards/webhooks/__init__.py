"""
Webhook handlers for the shopper rewards service.
Receives asynchronous payment outcomes from Safaricom.
"""
from .safaricom import safaricom_webhook_bp

__all__ = ['safaricom_webhook_bp']
