from datetime import datetime
from pydantic import BaseModel


class Resource(BaseModel):
    id: int
    account_id: int
    name: str
    payload: str
    is_archived: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ResourceCreateModel(BaseModel):
    account_id: int
    name: str
    payload: str = ""


class ResourceUsageTotals(BaseModel):
    """Raw aggregates over an account's live resources."""

    resource_count: int
    storage_bytes: int
