"""Cart model - one active cart per identity (multi-owner: user or guest session)."""
import enum
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Index, CheckConstraint, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base


class CartStatus(str, enum.Enum):
    """Cart lifecycle."""
    ACTIVE = 'active'
    CONVERTED = 'converted'


_ACTIVE_ONLY = text("status = 'active'")


class Cart(Base):
    """
    Shopping cart owned by exactly one identity.

    Owner is either a profile (authenticated) or a guest session id.
    At most one ACTIVE cart per owner is enforced by partial unique
    indexes, so concurrent get-or-create calls collide in the database
    and the loser re-reads the winner's row.
    """

    __tablename__ = 'carts'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    profile_id = Column(String(36), nullable=True)
    session_id = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=CartStatus.ACTIVE.value, server_default='active')
    is_guest = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            '(profile_id IS NULL) <> (session_id IS NULL)',
            name='ck_carts_single_owner',
        ),
        Index(
            'uq_carts_active_profile', 'profile_id', unique=True,
            postgresql_where=_ACTIVE_ONLY, sqlite_where=_ACTIVE_ONLY,
        ),
        Index(
            'uq_carts_active_session', 'session_id', unique=True,
            postgresql_where=_ACTIVE_ONLY, sqlite_where=_ACTIVE_ONLY,
        ),
    )

    # Relationships
    items = relationship('CartItem', back_populates='cart', cascade='all, delete-orphan')

    def __repr__(self):
        owner = self.profile_id or self.session_id
        return f"<Cart(id={self.id}, owner={owner}, status='{self.status}')>"
