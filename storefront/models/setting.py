"""Process-wide key/value settings (e.g. usd_rate)."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from storefront.database import Base


class Setting(Base):
    """Settings row."""

    __tablename__ = 'settings'

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Setting(key='{self.key}', value='{self.value}')>"
