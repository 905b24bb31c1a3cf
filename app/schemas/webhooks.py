from typing import Any

from pydantic import BaseModel, Field


class StripeCheckoutSession(BaseModel):
    id: str
    amount_total: int | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class StripeEvent(BaseModel):
    id: str | None = None
    type: str
    data: dict[str, Any]


class ClerkEmailAddress(BaseModel):
    email_address: str


class ClerkUserData(BaseModel):
    id: str
    email_addresses: list[ClerkEmailAddress] = Field(default_factory=list)
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None


class ClerkEvent(BaseModel):
    type: str
    data: dict[str, Any]
