"""
RefreshSession model: one row per logged-in client instance.
Fields:
- account_id (String(36)) - FK to accounts.id, cascades on account deletion
- refresh_token (unique, opaque, fixed length)
- expires_at (naive UTC)
Consumed or revoked rows are deleted, never flagged.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base

REFRESH_TOKEN_LENGTH = 128


class RefreshSession(BaseModel, Base):
    __tablename__ = "refresh_sessions"

    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    refresh_token = Column(String(REFRESH_TOKEN_LENGTH), nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)

    account = relationship("Account", back_populates="sessions")

    __table_args__ = (
        Index("ix_refresh_sessions_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<RefreshSession id={self.id} account={self.account_id}>"
