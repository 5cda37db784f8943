"""
Safaricom M-Pesa B2C payment service.

Rewards are paid out as B2C payments. The gateway answers the payment
request synchronously with an acceptance (ConversationID) and later posts
the final outcome to our result or queue-timeout webhook.

API Documentation: https://developer.safaricom.co.ke/APIs/BusinessToCustomer
"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Optional, Dict, Any

import requests
from flask import current_app

from ..utils.cache import cache, cache_key
from ..utils.exceptions import ConfigurationError, PaymentGatewayError

logger = logging.getLogger(__name__)

SANDBOX_URL = 'https://sandbox.safaricom.co.ke'
PRODUCTION_URL = 'https://api.safaricom.co.ke'

VALID_COMMAND_IDS = ('BusinessPayment', 'SalaryPayment', 'PromotionPayment')

MIN_AMOUNT = 1
MAX_AMOUNT = 70000  # KES, B2C per-transaction ceiling

# Refresh the access token a minute before Safaricom expires it
TOKEN_EXPIRY_MARGIN = 60

REQUIRED_SETTINGS = (
    'SAFARICOM_CONSUMER_KEY',
    'SAFARICOM_CONSUMER_SECRET',
    'SAFARICOM_INITIATOR_NAME',
    'SAFARICOM_SECURITY_CREDENTIAL',
    'SAFARICOM_SHORT_CODE',
)

_PHONE_PATTERN = re.compile(r'^(\+254|254|0)?(7|1)\d{8}$')


@dataclass
class PaymentRequest:
    phone_number: str
    amount: Decimal
    reward_id: str
    customer_name: str = 'Customer'


@dataclass
class PaymentResult:
    """Synchronous answer to a payment request (not the final outcome)."""
    success: bool
    message: str
    transaction_id: Optional[str] = None
    originator_conversation_id: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PaymentGateway(ABC):
    """Anything that can start a mobile-money payout."""

    @abstractmethod
    def issue_payment(self, request: PaymentRequest) -> PaymentResult:
        """Start a payout. Must not raise for gateway-side failures."""


def format_phone_number(phone: str) -> str:
    """Format a Kenyan mobile number as 2547XXXXXXXX / 2541XXXXXXXX."""
    cleaned = re.sub(r'[^\d+]', '', phone or '')
    if cleaned.startswith('+254'):
        return cleaned[1:]
    if cleaned.startswith('254'):
        return cleaned
    if cleaned.startswith('0'):
        return '254' + cleaned[1:]
    if len(cleaned) == 9 and cleaned[0] in '17':
        return '254' + cleaned
    return cleaned


class SafaricomB2CClient(PaymentGateway):
    """
    Safaricom Daraja B2C client.

    Usage:
        client = get_payment_gateway()
        result = client.issue_payment(PaymentRequest('+254712345678', Decimal('30'), reward.id))
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        initiator_name: str,
        security_credential: str,
        short_code: str,
        callback_base_url: str,
        environment: str = 'sandbox',
        command_id: str = 'BusinessPayment',
        timeout: int = 30
    ):
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.initiator_name = initiator_name
        self.security_credential = security_credential
        self.short_code = short_code
        self.callback_base_url = (callback_base_url or '').rstrip('/')
        self.environment = environment
        self.command_id = command_id
        self.timeout = timeout
        self.base_url = PRODUCTION_URL if environment == 'production' else SANDBOX_URL

    @property
    def result_url(self) -> str:
        return f'{self.callback_base_url}/webhook/safaricom/result'

    @property
    def timeout_url(self) -> str:
        return f'{self.callback_base_url}/webhook/safaricom/timeout'

    def get_access_token(self) -> str:
        """
        OAuth client-credentials token, shared through the app cache.

        Raises:
            PaymentGatewayError: Safaricom refused or could not be reached
        """
        key = cache_key('safaricom', 'access_token', environment=self.environment, consumer=self.consumer_key)
        token = cache.get(key)
        if token:
            return token

        try:
            response = requests.get(
                f'{self.base_url}/oauth/v1/generate',
                params={'grant_type': 'client_credentials'},
                auth=(self.consumer_key, self.consumer_secret),
                timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise PaymentGatewayError('Failed to get Safaricom access token', e)

        token = data.get('access_token')
        if not token:
            raise PaymentGatewayError('Safaricom token response did not include an access token')

        expires_in = int(data.get('expires_in', 3599))
        cache.set(key, token, timeout=max(expires_in - TOKEN_EXPIRY_MARGIN, 1))
        return token

    def _validate(self, request: PaymentRequest) -> Optional[PaymentResult]:
        """Local checks before anything is sent. Returns a failed result or None."""
        if not _PHONE_PATTERN.match(re.sub(r'\s+', '', request.phone_number or '')):
            return PaymentResult(
                success=False,
                message=(
                    'Invalid phone number format. Expected Kenyan format: '
                    f'+2547XXXXXXXX or 07XXXXXXXX. Got: {request.phone_number}'
                ),
                error_code='INVALID_PHONE'
            )

        if request.amount is None or not (MIN_AMOUNT <= request.amount <= MAX_AMOUNT):
            return PaymentResult(
                success=False,
                message=f'Invalid amount. Must be between {MIN_AMOUNT} and {MAX_AMOUNT:,} KES. Received: {request.amount} KES',
                error_code='INVALID_AMOUNT'
            )

        # B2C only moves whole shillings
        if request.amount != int(request.amount):
            return PaymentResult(
                success=False,
                message=f'Invalid amount. B2C payments must be whole KES. Received: {request.amount} KES',
                error_code='INVALID_AMOUNT'
            )

        if self.command_id not in VALID_COMMAND_IDS:
            return PaymentResult(
                success=False,
                message=f'Invalid CommandID. Must be one of: {", ".join(VALID_COMMAND_IDS)}',
                error_code='INVALID_COMMAND_ID'
            )

        if not request.reward_id:
            return PaymentResult(
                success=False,
                message='Missing required field: reward_id',
                error_code='MISSING_FIELDS'
            )

        if not self.callback_base_url:
            return PaymentResult(
                success=False,
                message='API URL not configured. Please set PUBLIC_API_URL',
                error_code='MISSING_CONFIG'
            )

        return None

    def issue_payment(self, request: PaymentRequest) -> PaymentResult:
        """
        Send a B2C payment request.

        Returns:
            PaymentResult. success=True means Safaricom accepted the request;
            the final outcome arrives on the result/timeout webhooks.
        """
        invalid = self._validate(request)
        if invalid:
            return invalid

        phone = format_phone_number(request.phone_number)
        payload = {
            'InitiatorName': self.initiator_name,
            'SecurityCredential': self.security_credential,
            'CommandID': self.command_id,
            'Amount': int(request.amount),
            'PartyA': self.short_code,
            'PartyB': phone,
            'Remarks': f'Reward for {request.customer_name}'[:100],
            'QueueTimeOutURL': self.timeout_url,
            'ResultURL': self.result_url,
            'Occasion': request.reward_id[:100],
        }

        try:
            token = self.get_access_token()
            logger.info('Initiating B2C payment for reward %s: %s KES', request.reward_id, payload['Amount'])
            response = requests.post(
                f'{self.base_url}/mpesa/b2c/v1/paymentrequest',
                json=payload,
                headers={
                    'Authorization': f'Bearer {token}',
                    'Content-Type': 'application/json',
                },
                timeout=self.timeout
            )
        except (requests.exceptions.RequestException, PaymentGatewayError) as e:
            logger.error('Safaricom payment error for reward %s: %s', request.reward_id, e)
            return PaymentResult(
                success=False,
                message=f'An error occurred while processing the payment: {e}',
                error_code='EXCEPTION'
            )

        try:
            data = response.json()
        except ValueError:
            logger.error('Unparseable Safaricom response (%s): %s', response.status_code, response.text[:500])
            return PaymentResult(
                success=False,
                message=f'Invalid response from Safaricom API: {response.status_code}',
                error_code='PARSE_ERROR'
            )

        description = data.get('ResponseDescription') or data.get('errorMessage')

        if not response.ok:
            logger.error('Safaricom API error (%s): %s', response.status_code, data)
            return PaymentResult(
                success=False,
                message=description or f'API request failed with status {response.status_code}',
                error_code=str(data.get('ResponseCode') or data.get('errorCode') or response.status_code)
            )

        accepted = str(data.get('ResponseCode')) == '0'
        logger.info(
            'B2C payment %s: %s %s',
            'initiated' if accepted else 'rejected', data.get('ConversationID'), description
        )

        return PaymentResult(
            success=accepted,
            message=description or '',
            transaction_id=data.get('ConversationID'),
            originator_conversation_id=data.get('OriginatorConversationID'),
            error_code=None if accepted else str(data.get('ResponseCode'))
        )


def get_payment_gateway() -> SafaricomB2CClient:
    """
    Build the B2C client from app configuration.

    Raises:
        ConfigurationError: Any credential is missing
    """
    config = current_app.config
    missing = [name for name in REQUIRED_SETTINGS if not config.get(name)]
    if missing:
        raise ConfigurationError(
            'Safaricom credentials not configured. Please set: ' + ', '.join(missing)
        )

    return SafaricomB2CClient(
        consumer_key=config['SAFARICOM_CONSUMER_KEY'],
        consumer_secret=config['SAFARICOM_CONSUMER_SECRET'],
        initiator_name=config['SAFARICOM_INITIATOR_NAME'],
        security_credential=config['SAFARICOM_SECURITY_CREDENTIAL'],
        short_code=config['SAFARICOM_SHORT_CODE'],
        callback_base_url=config.get('PUBLIC_API_URL', ''),
        environment=config.get('SAFARICOM_ENVIRONMENT', 'sandbox'),
        command_id=config.get('SAFARICOM_COMMAND_ID', 'BusinessPayment'),
        timeout=config.get('SAFARICOM_TIMEOUT', 30),
    )
