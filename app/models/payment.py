from sqlalchemy import Column, Integer, String, DateTime, Numeric

from app.core.clock import utcnow
from app.db.base import Base


class Payment(Base):
    """
    One row per provider transaction we have acted on.

    The unique reference makes webhook and callback processing idempotent:
    a replayed charge.success for a recorded reference is acknowledged and ignored.
    """

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String, nullable=False, default="paystack")
    reference = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=False, index=True)
    device_id = Column(String, nullable=True)

    # Amount in major units (e.g. 4485.00 for NGN 4,485); stored as decimal for precision
    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String, nullable=False)
    # granted | withheld
    status = Column(String, nullable=False, default="granted")

    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
