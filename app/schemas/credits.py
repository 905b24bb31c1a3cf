from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.services.transformations.catalog import TransformationType


class CheckoutIn(BaseModel):
    plan: str
    credits: int = Field(gt=0)
    amount: Decimal = Field(gt=0, decimal_places=2)  # major currency units
    buyer_id: str
    success_url: str
    cancel_url: str


class CheckoutOut(BaseModel):
    session_id: str
    url: str


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    stripe_id: str
    amount: Decimal
    plan: str
    credits: int
    buyer_id: str


class TransformationApplyIn(BaseModel):
    user_id: str
    transformation_type: TransformationType
    current_config: dict[str, Any] | None = None
    new_config: dict[str, Any]
    aspect_ratio: str | None = None


class TransformationApplyOut(BaseModel):
    config: dict[str, Any]
    width: int | None = None
    height: int | None = None
    credit_balance: int
