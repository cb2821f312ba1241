from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import Column, DateTime, Index
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    """Aware UTC, the form every stored timestamp uses."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    # some drivers (sqlite) hand back naive values for timezone-aware columns
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


class SessionRecord(SQLModel, table=True):
    """
    One issued refresh token, persisted for rotation and reuse detection.
    - token_digest: sha256 of the raw token; the raw token is never stored
    - replaced_by_digest: digest of the successor after rotation (audit trail only)
    - expired rows are purged by the store; is_active() stays authoritative until then
    """
    __tablename__ = "session_record"
    __table_args__ = (
        Index("ix_session_record_subject_revoked", "subject", "revoked_at"),
    )

    token_digest: str = Field(primary_key=True, max_length=64)
    subject: UUID = Field(index=True, foreign_key="user.user_id")

    issued_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    revoked_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    replaced_by_digest: Optional[str] = Field(default=None, max_length=64)

    origin_ip: Optional[str] = Field(default=None, max_length=45)
    origin_agent: Optional[str] = Field(default=None, max_length=255)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return as_utc(now or utcnow()) >= as_utc(self.expires_at)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return self.revoked_at is None and not self.is_expired(now)
