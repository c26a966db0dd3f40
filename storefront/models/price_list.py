"""Price list and role-specific variant price overrides."""
import uuid
from sqlalchemy import Column, String, Boolean, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from storefront.database import Base
from storefront.utils.dates import utcnow


class PriceList(Base):
    """Named batch of override prices created from the admin price-list wizard."""

    __tablename__ = 'price_lists'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default='b2b')
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    items = relationship('VariantPrice', back_populates='price_list')

    def __repr__(self):
        return f"<PriceList(id={self.id}, name='{self.name}', role='{self.role}')>"


class VariantPrice(Base):
    """
    Role-specific price for a variant.

    Superseded rows are kept (is_active may stay true on legacy data);
    the newest active row per (variant, role) wins.
    """

    __tablename__ = 'variant_prices'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    variant_id = Column(String(36), ForeignKey('product_variants.id', ondelete='CASCADE'), nullable=False)
    price_list_id = Column(String(36), ForeignKey('price_lists.id', ondelete='SET NULL'), nullable=True)
    role = Column(String(20), nullable=False, default='b2b', server_default='b2b')
    price = Column(Numeric(12, 2), nullable=False)  # USD
    is_active = Column(Boolean, nullable=False, default=True)
    # Python-side default: microsecond resolution keeps recency ordering stable
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('ix_variant_prices_lookup', 'variant_id', 'role', 'is_active', 'created_at'),
    )

    # Relationships
    variant = relationship('ProductVariant', back_populates='prices')
    price_list = relationship('PriceList', back_populates='items')

    def __repr__(self):
        return f"<VariantPrice(variant_id={self.variant_id}, role='{self.role}', price={self.price})>"
