"""Saved shipping address of a profile."""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base


class Address(Base):
    """Address book entry."""

    __tablename__ = 'addresses'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    profile_id = Column(String(36), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    type = Column(String(20), nullable=False, default='shipping')
    full_name = Column(String(200), nullable=False)
    phone = Column(String(40), nullable=False)
    country = Column(String(80), nullable=False, default='Türkiye')
    city = Column(String(80), nullable=False)
    district = Column(String(80), nullable=False)
    address_line = Column(String(500), nullable=False)
    postal_code = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    profile = relationship('Profile', back_populates='addresses')

    def to_snapshot(self) -> dict:
        """Copy of the address as stored on an order."""
        return {
            'full_name': self.full_name,
            'phone': self.phone,
            'address_line': self.address_line,
            'city': self.city,
            'district': self.district,
            'country': self.country,
            'postal_code': self.postal_code,
        }

    def __repr__(self):
        return f"<Address(id={self.id}, profile_id={self.profile_id}, city='{self.city}')>"
