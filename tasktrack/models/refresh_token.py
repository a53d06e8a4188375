"""Refresh token model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Integer, ForeignKey
from datetime import datetime
from typing import Optional
import hashlib

from tasktrack.clock import utcnow
from tasktrack.models.types import UTCDateTime


class RefreshToken(SQLModel, table=True):
    """One refresh token, i.e. one logged-in device or client."""
    __tablename__ = "refresh_tokens"

    id: Optional[int] = Field(default=None, primary_key=True)
    token: str = Field(unique=True, index=True, max_length=255)
    account_id: int = Field(
        sa_column=Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), index=True, nullable=False)
    )
    expires_at: datetime = Field(index=True, sa_type=UTCDateTime)
    is_revoked: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return not self.is_revoked and not self.is_expired(now)

    def revoke(self, now: Optional[datetime] = None) -> None:
        self.is_revoked = True
        self.updated_at = now or utcnow()

    @property
    def preview(self) -> str:
        """Short fingerprint safe to show to users; the token cannot be recovered from it."""
        return hashlib.sha256(self.token.encode("utf-8")).hexdigest()[:12]
