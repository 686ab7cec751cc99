from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
)

from app.core.clock import utcnow
from app.db.base import Base


class TrialServer(Base):
    """A VPN server shared by trial users, up to `capacity` at a time."""

    __tablename__ = "trial_servers"
    __table_args__ = (
        CheckConstraint("current_users >= 0", name="ck_trial_servers_users_non_negative"),
        CheckConstraint("current_users <= capacity", name="ck_trial_servers_within_capacity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    ip = Column(String, nullable=False)
    username = Column(String, nullable=False)
    password = Column(String, nullable=False)
    location = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    capacity = Column(Integer, nullable=False, default=10)
    current_users = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class TrialAllocation(Base):
    """Which trial server a device was handed. released_at is set once its slot is returned."""

    __tablename__ = "trial_allocations"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(String, unique=True, index=True, nullable=False)
    server_id = Column(Integer, ForeignKey("trial_servers.id", ondelete="CASCADE"), nullable=False)
    allocated_at = Column(DateTime, default=utcnow, nullable=False)
    released_at = Column(DateTime, nullable=True)
