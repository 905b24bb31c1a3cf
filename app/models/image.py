from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db.base import Base, JSONType
from app.models.user import User


class Image(Base):
    __tablename__ = "images"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    title = Column(String, nullable=False)
    transformation_type = Column(String, nullable=False)  # see TransformationType
    public_id = Column(String, unique=True, nullable=False, index=True)  # blob id at the storage provider
    secure_url = Column(String, nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    config = Column(JSONType, nullable=False, default=dict)  # forwarded verbatim to the provider URL builder
    transformation_url = Column(Text, nullable=True)
    aspect_ratio = Column(String, nullable=True)
    color = Column(String, nullable=True)
    prompt = Column(String, nullable=True)
    author_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    is_private = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    author = relationship(User, lazy="joined")
