"""Product variant model (the purchasable SKU)."""
import uuid
from sqlalchemy import Column, String, Boolean, Integer, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base


class ProductVariant(Base):
    """
    Variant of a product with its own USD base price and stock.

    The optional discount is time-boxed: it applies only while the
    percentage is positive and now falls inside [start, end]; a missing
    bound is open-ended.
    """

    __tablename__ = 'product_variants'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id = Column(String(36), ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=True)
    base_price = Column(Numeric(12, 2), nullable=False)  # USD
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0, server_default='0')
    discount_start_date = Column(DateTime(timezone=True), nullable=True)
    discount_end_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_product_variants_stock_non_negative'),
    )

    # Relationships
    product = relationship('Product', back_populates='variants')
    prices = relationship('VariantPrice', back_populates='variant', cascade='all, delete-orphan')

    @property
    def display_name(self) -> str:
        """Product name plus variant name, as shown to shoppers."""
        if self.product is not None and self.product.name and self.product.name != self.name:
            return f"{self.product.name} - {self.name}"
        return self.name

    @property
    def discount(self):
        """Discount descriptor for the pricing resolver, or None."""
        from storefront.services.pricing_service import Discount
        if not self.discount_percentage:
            return None
        return Discount(self.discount_percentage, self.discount_start_date, self.discount_end_date)

    def __repr__(self):
        return f"<ProductVariant(id={self.id}, name='{self.name}', sku='{self.sku}')>"
