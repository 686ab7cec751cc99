from sqlalchemy import Column, Integer, String, DateTime

from app.db.base import Base


class Trial(Base):
    """One free trial window per device. Never extended, never deleted."""

    __tablename__ = "trials"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, nullable=False)
    started_at = Column(DateTime, nullable=False)
