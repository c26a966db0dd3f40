"""Cart line model."""
import uuid
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base


class CartItem(Base):
    """
    One line per (cart, variant); repeat adds increment quantity.
    """

    __tablename__ = 'cart_items'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    cart_id = Column(String(36), ForeignKey('carts.id', ondelete='CASCADE'), nullable=False, index=True)
    variant_id = Column(String(36), ForeignKey('product_variants.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('cart_id', 'variant_id', name='uq_cart_items_cart_variant'),
        CheckConstraint('quantity > 0', name='ck_cart_items_quantity_positive'),
    )

    # Relationships
    cart = relationship('Cart', back_populates='items')
    variant = relationship('ProductVariant')

    def __repr__(self):
        return f"<CartItem(id={self.id}, variant_id={self.variant_id}, quantity={self.quantity})>"
