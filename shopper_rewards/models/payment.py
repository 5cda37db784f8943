"""
Payment transaction audit trail.

One row per dispatch attempt, written before the gateway is called. Gateway
callbacks find the row by the gateway's own conversation id (transaction_id),
never by reward id.
"""
import uuid
from datetime import datetime
from enum import Enum
from ..extensions import db


class PaymentStatus(str, Enum):
    """Payment transaction lifecycle."""
    PENDING = 'pending'        # Row written, gateway not yet answered
    INITIATED = 'initiated'    # Gateway accepted the request
    COMPLETED = 'completed'    # Result callback reported success
    FAILED = 'failed'          # Rejected, errored or timed out

    @classmethod
    def open_states(cls):
        """States a callback may still move out of."""
        return [cls.PENDING.value, cls.INITIATED.value]


class PaymentTransaction(db.Model):
    """A single payout attempt for a reward."""
    __tablename__ = 'payment_transactions'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Weak reference: no cascade, rewards do not own their attempts
    reward_id = db.Column(db.String(36), db.ForeignKey('rewards.id', ondelete='SET NULL'), index=True)

    phone_number = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING.value)

    # Gateway correlation
    transaction_id = db.Column(db.String(100), index=True)  # ConversationID
    originator_conversation_id = db.Column(db.String(100))
    result_code = db.Column(db.String(20))
    error_message = db.Column(db.Text)

    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_attempt_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    reward = db.relationship('Reward', backref=db.backref('payment_transactions', lazy='dynamic'))

    def __repr__(self):
        return f'<PaymentTransaction {self.id} {self.status}>'

    @property
    def is_terminal(self) -> bool:
        return self.status not in PaymentStatus.open_states()

    def to_dict(self):
        return {
            'id': self.id,
            'reward_id': self.reward_id,
            'phone_number': self.phone_number,
            'amount': float(self.amount),
            'status': self.status,
            'transaction_id': self.transaction_id,
            'originator_conversation_id': self.originator_conversation_id,
            'result_code': self.result_code,
            'error_message': self.error_message,
            'attempts': self.attempts,
            'last_attempt_at': self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
