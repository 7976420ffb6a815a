from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class ResourceEntity(Base):
    """Account-owned resource counted against plan quotas."""

    __tablename__ = "resources"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    account_id = Column(
        BigIntegerType,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = Column(String, nullable=False)
    # Serialized document; its length is what storage quotas measure
    payload = Column(Text, nullable=False, default="", server_default="")
    is_archived = Column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_resources_account_id_is_archived", "account_id", "is_archived"),
    )
