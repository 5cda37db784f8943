"""
Campaign model.

Campaigns are managed outside this service; the redemption core only reads
them to find the products (and so the SKUs) a QR batch is issued for.
"""
import uuid
from datetime import datetime
from ..extensions import db


campaign_products = db.Table(
    'campaign_products',
    db.Column('campaign_id', db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), primary_key=True),
    db.Column('product_id', db.String(36), db.ForeignKey('products.id', ondelete='CASCADE'), primary_key=True),
)


class Campaign(db.Model):
    """A feedback campaign running over one or more products."""
    __tablename__ = 'campaigns'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)

    start_date = db.Column(db.DateTime)
    end_date = db.Column(db.DateTime)
    target_responses = db.Column(db.Integer, default=0)
    active = db.Column(db.Boolean, default=True)

    # Free-form settings (questions etc.), owned by the campaign editor
    meta = db.Column(db.JSON, default=dict)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    products = db.relationship('Product', secondary=campaign_products, backref='campaigns', lazy='select')
    qr_codes = db.relationship('QRCode', backref='campaign', lazy='dynamic', cascade='all, delete-orphan')
    feedback = db.relationship('Feedback', backref='campaign', lazy='dynamic', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Campaign {self.name}>'

    def variants(self):
        """All SKUs of all linked products, in a stable order."""
        skus = []
        for product in sorted(self.products, key=lambda p: p.name or ''):
            skus.extend(sorted(product.skus, key=lambda s: s.weight or ''))
        return skus

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'target_responses': self.target_responses,
            'active': self.active,
            'products': [p.id for p in self.products],
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
