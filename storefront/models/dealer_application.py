"""Dealer (wholesale) application model."""
import enum
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base


class DealerStatus(str, enum.Enum):
    """Application review states."""
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class DealerApplication(Base):
    """Request by a customer to be upgraded to the wholesale price tier."""

    __tablename__ = 'dealer_applications'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    profile_id = Column(String(36), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    tax_number = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=DealerStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    profile = relationship('Profile')

    def __repr__(self):
        return f"<DealerApplication(id={self.id}, company='{self.company_name}', status='{self.status}')>"
