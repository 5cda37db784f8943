"""
Redemption ledger model.

One row per printed QR code. Only the SHA-256 hash of the raw token is
stored; the raw token lives solely in the QR image's URL.
"""
import uuid
from datetime import datetime
from ..extensions import db


class QRCode(db.Model):
    """
    A single-use redemption code.

    is_used flips False -> True exactly once, through a conditional update
    (see services/redemption_ledger.py). used_at, used_by and location are
    set by that same update and never otherwise.
    """
    __tablename__ = 'qr_codes'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True)
    sku_id = db.Column(db.String(36), db.ForeignKey('product_skus.id'), nullable=False, index=True)

    token_hash = db.Column(db.String(64), unique=True, nullable=False)
    url = db.Column(db.Text, nullable=False)  # Contains the raw token
    batch_number = db.Column(db.Integer, nullable=False, default=0)  # 0 = preview

    # Redemption state
    is_used = db.Column(db.Boolean, nullable=False, default=False, index=True)
    used_at = db.Column(db.DateTime)
    used_by = db.Column(db.String(20))  # Customer phone
    location = db.Column(db.JSON)  # {latitude, longitude, region}

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    sku = db.relationship('ProductSKU')

    __table_args__ = (
        db.Index('ix_qr_codes_campaign_used', 'campaign_id', 'is_used'),
    )

    def __repr__(self):
        return f'<QRCode {self.id} used={self.is_used}>'

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'sku_id': self.sku_id,
            'url': self.url,
            'batch_number': self.batch_number,
            'is_used': self.is_used,
            'used_at': self.used_at.isoformat() if self.used_at else None,
            'location': self.location,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
