"""Profile model - one row per auth-provider user."""
import uuid
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base


class Profile(Base):
    """
    Profile of an authenticated user.

    Rows are created by the auth provider after signup (possibly with some
    lag), the id is the provider's user id.
    """

    __tablename__ = 'profiles'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    role = Column(String(20), nullable=False, default='b2c', server_default='b2c')  # b2c, b2b, admin
    email = Column(String(255), nullable=True)
    full_name = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    addresses = relationship('Address', back_populates='profile', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Profile(id={self.id}, role='{self.role}')>"
