"""
Product and SKU (variant) models.

The SKU record is the single source of a variant's reward: the redemption
transaction copies reward_amount and reward_description from here.
"""
import uuid
from datetime import datetime
from ..extensions import db


class Product(db.Model):
    """A sellable product line (e.g. Classic Githeri)."""
    __tablename__ = 'products'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(100))
    active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    skus = db.relationship('ProductSKU', backref='product', lazy='select', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Product {self.name}>'


class ProductSKU(db.Model):
    """
    A specific size/packaging of a product.
    Every QR code is bound to exactly one SKU.
    """
    __tablename__ = 'product_skus'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id = db.Column(db.String(36), db.ForeignKey('products.id'), nullable=False)

    weight = db.Column(db.String(20))  # 340g, 500g
    price = db.Column(db.Numeric(10, 2))

    # Reward paid for a verified feedback on this SKU
    reward_amount = db.Column(db.Numeric(10, 2))
    reward_description = db.Column(db.String(255))  # "30 KES Data Bundle (150MB)"

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<ProductSKU {self.id} {self.weight}>'

    @property
    def display_name(self) -> str:
        if self.product:
            return f'{self.product.name} {self.weight or ""}'.strip()
        return self.weight or self.id

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'weight': self.weight,
            'price': float(self.price) if self.price is not None else None,
            'reward_amount': float(self.reward_amount) if self.reward_amount is not None else None,
            'reward_description': self.reward_description,
        }
