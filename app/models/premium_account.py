from sqlalchemy import Column, Integer, String, Boolean, DateTime

from app.core.clock import utcnow
from app.db.base import Base


class PremiumAccount(Base):
    """Premium entitlement for one email address, optionally bound to one device."""

    __tablename__ = "premium_accounts"

    id = Column(Integer, primary_key=True, index=True)
    # Stored exactly as the provider reported it; lookups are case-sensitive
    email = Column(String, unique=True, index=True, nullable=False)
    is_premium = Column(Boolean, default=True, nullable=False)
    bound_device_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
