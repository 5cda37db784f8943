"""
Shared pytest fixtures for the shopper rewards tests.

The app fixture keeps one app context pushed for the whole test, so fixtures,
services and test-client requests all share the same database session.
"""
import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from shopper_rewards import create_app
from shopper_rewards.extensions import db
from shopper_rewards.models import (
    Campaign,
    Feedback,
    Product,
    ProductSKU,
    QRCode,
    Reward,
    RewardStatus,
)
from shopper_rewards.services.safaricom_service import PaymentGateway, PaymentResult
from shopper_rewards.utils.cache import cache
from shopper_rewards.utils.tokens import generate_token


NAIROBI_CBD = {'latitude': -1.2921, 'longitude': 36.8219, 'region': 'Nairobi'}


@pytest.fixture
def app():
    """Create test application."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        cache.clear()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Test client."""
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """Admin headers for protected endpoints."""
    return {
        'X-Admin-Key': app.config['ADMIN_API_KEY'],
        'Content-Type': 'application/json',
    }


@pytest.fixture
def sample_campaign(app):
    """A campaign over one product with two SKUs (340g -> 20 KES, 500g -> 30 KES)."""
    product = Product(name='Classic Githeri', category='ready-meals')
    product.skus = [
        ProductSKU(
            weight='340g',
            price=Decimal('120.00'),
            reward_amount=Decimal('20.00'),
            reward_description='20 KES Data Bundle (100MB)'
        ),
        ProductSKU(
            weight='500g',
            price=Decimal('170.00'),
            reward_amount=Decimal('30.00'),
            reward_description='30 KES Data Bundle (150MB)'
        ),
    ]
    campaign = Campaign(name='Githeri Launch', description='Launch feedback campaign')
    campaign.products.append(product)

    db.session.add(campaign)
    db.session.commit()
    return campaign


@pytest.fixture
def sample_sku(sample_campaign):
    """The 500g SKU (30 KES reward)."""
    return sample_campaign.variants()[1]


@pytest.fixture
def raw_token():
    """A raw token and its hash, as embedded in a printed QR code."""
    return generate_token()


@pytest.fixture
def sample_qr_code(sample_campaign, sample_sku, raw_token):
    """An unused code for the 500g SKU."""
    token, token_hash = raw_token
    code = QRCode(
        campaign_id=sample_campaign.id,
        sku_id=sample_sku.id,
        token_hash=token_hash,
        url=f'https://shop.example.com/feedback?campaign={sample_campaign.id}&s={sample_sku.id}&t={token}&qr=true',
        batch_number=1,
        is_used=False,
    )
    db.session.add(code)
    db.session.commit()
    return code


@pytest.fixture
def make_qr_code(sample_campaign, sample_sku):
    """Factory for extra unused codes. Returns (code, raw_token)."""
    def _make(sku=None, batch_number=1):
        sku = sku or sample_sku
        token, token_hash = generate_token()
        code = QRCode(
            campaign_id=sample_campaign.id,
            sku_id=sku.id,
            token_hash=token_hash,
            url=f'https://shop.example.com/feedback?t={token}',
            batch_number=batch_number,
            is_used=False,
        )
        db.session.add(code)
        db.session.commit()
        return code, token
    return _make


@pytest.fixture
def nairobi_location():
    """A point in the Nairobi CBD."""
    return dict(NAIROBI_CBD)


@pytest.fixture
def feedback_payload(sample_campaign, sample_sku, raw_token, sample_qr_code):
    """A valid feedback submission for sample_qr_code."""
    return {
        'campaign_id': sample_campaign.id,
        'sku_id': sample_sku.id,
        'customer_phone': '0712 345 678',
        'token': raw_token[0],
        'location': dict(NAIROBI_CBD),
        'rating': 5,
        'customer_name': 'Wanjiku',
        'comment': 'Tastes like home',
        'custom_answers': {'would_buy_again': True, 'flavours': ['original', 'spicy']},
    }


@pytest.fixture
def sample_reward(sample_campaign, sample_sku, sample_qr_code):
    """A pending 30 KES reward with its verified feedback."""
    feedback = Feedback(
        campaign_id=sample_campaign.id,
        sku_id=sample_sku.id,
        qr_code_id=sample_qr_code.id,
        customer_phone='+254712345678',
        customer_name='Wanjiku',
        rating=4,
        sentiment='positive',
        location=dict(NAIROBI_CBD),
        verified=True,
    )
    db.session.add(feedback)
    db.session.flush()

    reward = Reward(
        feedback_id=feedback.id,
        customer_phone='+254712345678',
        amount=Decimal('30.00'),
        reward_name='30 KES Data Bundle (150MB)',
        status=RewardStatus.PENDING.value,
    )
    db.session.add(reward)
    db.session.commit()
    return reward


@pytest.fixture
def mock_gateway():
    """A payment gateway that accepts every request."""
    gateway = MagicMock(spec=PaymentGateway)
    gateway.issue_payment.return_value = PaymentResult(
        success=True,
        message='Accept the service request successfully.',
        transaction_id='AG_20261018_00001',
        originator_conversation_id='12345-67890-1',
    )
    return gateway
