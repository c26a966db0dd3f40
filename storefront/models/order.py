"""Order model - immutable snapshot materialized from a cart."""
import enum
import uuid
from sqlalchemy import Column, String, Boolean, Numeric, DateTime, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base


class OrderStatus(str, enum.Enum):
    """Known order statuses. The column stays a free string; the vocabulary is open."""
    PENDING_PAYMENT = 'pending_payment'
    APPROVED = 'approved'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'
    RETURNED = 'returned'


class Order(Base):
    """Order header (totals in settlement currency)."""

    __tablename__ = 'orders'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_no = Column(String(40), nullable=False, unique=True)
    status = Column(String(30), nullable=False, default=OrderStatus.PENDING_PAYMENT.value)
    currency = Column(String(3), nullable=False, default='TRY')
    subtotal = Column(Numeric(14, 2), nullable=False)
    discount_total = Column(Numeric(14, 2), nullable=False, default=0)
    shipping_total = Column(Numeric(14, 2), nullable=False, default=0)
    grand_total = Column(Numeric(14, 2), nullable=False)
    shipping_address = Column(JSON, nullable=False)
    tracking_number = Column(String(100), nullable=True)

    user_id = Column(String(36), nullable=True, index=True)
    is_guest = Column(Boolean, nullable=False, default=False)
    guest_email = Column(String(255), nullable=True)
    guest_name = Column(String(200), nullable=True)
    guest_phone = Column(String(40), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Order(id={self.id}, order_no='{self.order_no}', status='{self.status}')>"
