from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String

from app.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    external_id = Column(String, unique=True, nullable=False, index=True)  # identity provider subject id
    email = Column(String, unique=True, nullable=False)
    username = Column(String, unique=True, nullable=False)
    photo = Column(String, nullable=False, default="")
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    plan_id = Column(Integer, nullable=False, default=1)
    # Mutated only by LedgerService (atomic increments)
    credit_balance = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
