"""
Feedback and reward models.

Both rows are only ever created together, inside the redemption
transaction (services/redemption_service.py). A feedback owns its reward.
"""
import uuid
from datetime import datetime
from enum import Enum
from ..extensions import db


class Sentiment(str, Enum):
    """Sentiment derived from the star rating."""
    POSITIVE = 'positive'  # 4-5 stars
    NEUTRAL = 'neutral'    # 3 stars
    NEGATIVE = 'negative'  # 1-2 stars

    @classmethod
    def from_rating(cls, rating: int) -> 'Sentiment':
        if rating >= 4:
            return cls.POSITIVE
        if rating == 3:
            return cls.NEUTRAL
        return cls.NEGATIVE


class RewardStatus(str, Enum):
    """Reward lifecycle."""
    PENDING = 'pending'    # Created with its feedback, awaiting dispatch
    SENT = 'sent'          # Payment initiated/confirmed by the gateway
    FAILED = 'failed'      # Gateway rejected or timed out; may be re-dispatched
    VERIFIED = 'verified'  # Confirmed out of band by an operator

    @classmethod
    def values(cls):
        return [s.value for s in cls]


class Feedback(db.Model):
    """A verified customer feedback submission (one per redeemed QR code)."""
    __tablename__ = 'feedback'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True)
    sku_id = db.Column(db.String(36), db.ForeignKey('product_skus.id'), nullable=False)
    qr_code_id = db.Column(db.String(36), db.ForeignKey('qr_codes.id'), unique=True)

    customer_phone = db.Column(db.String(20), nullable=False)  # +2547XXXXXXXX
    customer_name = db.Column(db.String(100))

    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)
    sentiment = db.Column(db.String(20), nullable=False)  # Sentiment
    custom_answers = db.Column(db.JSON, default=dict)
    location = db.Column(db.JSON)

    verified = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    sku = db.relationship('ProductSKU')
    reward = db.relationship('Reward', backref='feedback', uselist=False, cascade='all, delete-orphan')

    __table_args__ = (
        # One submission per phone per campaign
        db.UniqueConstraint('campaign_id', 'customer_phone', name='uq_feedback_campaign_phone'),
    )

    def __repr__(self):
        return f'<Feedback {self.id} rating={self.rating}>'

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'sku_id': self.sku_id,
            'customer_phone': self.customer_phone,
            'customer_name': self.customer_name,
            'rating': self.rating,
            'comment': self.comment,
            'sentiment': self.sentiment,
            'custom_answers': self.custom_answers or {},
            'location': self.location,
            'verified': self.verified,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Reward(db.Model):
    """
    A mobile-money payout owed for a verified feedback.

    pending -> sent | failed through the reward dispatcher only.
    sent is terminal; failed may be selected again for dispatch.
    """
    __tablename__ = 'rewards'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    feedback_id = db.Column(db.String(36), db.ForeignKey('feedback.id', ondelete='CASCADE'), nullable=False, unique=True)

    customer_phone = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    reward_name = db.Column(db.String(255))

    status = db.Column(db.String(20), nullable=False, default=RewardStatus.PENDING.value, index=True)
    sent_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Reward {self.id} {self.amount} {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'feedback_id': self.feedback_id,
            'customer_phone': self.customer_phone,
            'amount': float(self.amount),
            'reward_name': self.reward_name,
            'status': self.status,
            'sent_at': self.sent_at.isoformat() if self.sent_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
