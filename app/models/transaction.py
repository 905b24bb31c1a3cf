"""
Transaction model: append-only record of completed credit purchases.
stripe_id is unique and serves as the idempotency key for webhook re-delivery.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, Numeric, String

from app.db.base import Base


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    stripe_id = Column(String, unique=True, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)     # major currency units (amount_total / 100)
    plan = Column(String, nullable=False, default="")
    credits = Column(Integer, nullable=False, default=0)
    # No FK: the payment record must persist even when the buyer no longer exists
    buyer_id = Column(String, nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
