"""Order line model - denormalized purchase-time snapshot."""
import uuid
from sqlalchemy import Column, String, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from storefront.database import Base


class OrderItem(Base):
    """
    Order line. Name, sku and prices are copies taken at checkout;
    catalog edits never touch them.
    """

    __tablename__ = 'order_items'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    variant_id = Column(String(36), nullable=True)
    product_id = Column(String(36), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price_snapshot = Column(Numeric(14, 2), nullable=False)
    line_total = Column(Numeric(14, 2), nullable=False)
    product_name_snapshot = Column(String(255), nullable=False)
    sku_snapshot = Column(String(100), nullable=False, default='')

    # Relationships
    order = relationship('Order', back_populates='items')

    def __repr__(self):
        return f"<OrderItem(id={self.id}, sku='{self.sku_snapshot}', qty={self.quantity})>"
