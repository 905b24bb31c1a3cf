from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.services.transformations.catalog import TransformationType


class ImageIn(BaseModel):
    title: str = Field(min_length=1)
    public_id: str = Field(min_length=1)
    transformation_type: TransformationType
    secure_url: str
    width: int | None = None
    height: int | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    transformation_url: str | None = None
    aspect_ratio: str | None = None
    color: str | None = None
    prompt: str | None = None
    is_private: bool = False


class ImageSave(BaseModel):
    """Body of add/update requests: image fields plus the acting user."""
    user_id: str
    image: ImageIn


class AuthorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    external_id: str
    first_name: str | None = None
    last_name: str | None = None


class ImageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    transformation_type: str
    public_id: str
    secure_url: str
    width: int | None = None
    height: int | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    transformation_url: str | None = None
    aspect_ratio: str | None = None
    color: str | None = None
    prompt: str | None = None
    author_id: str
    author: AuthorOut | None = None
    is_private: bool
    created_at: datetime
    updated_at: datetime


class ImagePage(BaseModel):
    data: list[ImageOut]
    total_pages: int
    saved_images: int | None = None
