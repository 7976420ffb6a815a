"""
Domain models for usage and quotas.
"""

from typing import Optional
from pydantic import BaseModel


class UsageSnapshot(BaseModel):
    """Current usage of an account, computed on demand."""

    resource_count: int
    storage_mb: float


class QuotaCheck(BaseModel):
    """
    Result of a quota check for one action.

    A limit of -1 means unlimited.
    """

    allowed: bool
    current: int
    limit: int
    reason: Optional[str] = None


class QuotaUsage(BaseModel):
    """Used / limit / available for one metric (-1 limit and available = unlimited)."""

    used: int
    limit: int
    available: int


class QuotaStatus(BaseModel):
    """Read-only quota projection for client display."""

    plan: str
    quotas: dict[str, QuotaUsage]
    features: list[str]
