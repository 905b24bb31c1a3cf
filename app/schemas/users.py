from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    external_id: str
    email: str
    username: str
    photo: str
    first_name: str | None = None
    last_name: str | None = None
    plan_id: int = 1
    credit_balance: int
    created_at: datetime | None = None


class UserCreate(BaseModel):
    external_id: str
    email: str
    username: str
    photo: str = ""
    first_name: str | None = None
    last_name: str | None = None


class UserUpdate(BaseModel):
    username: str | None = None
    photo: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class BalanceOut(BaseModel):
    user_id: str
    credit_balance: int
