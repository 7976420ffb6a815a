from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class Account(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    external_customer_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AccountCreateModel(BaseModel):
    """Model for creating a new account."""

    email: str
    name: Optional[str] = None


class AccountUpdateModel(BaseModel):
    """Model for updating an account."""

    name: Optional[str] = None
    external_customer_id: Optional[str] = None
