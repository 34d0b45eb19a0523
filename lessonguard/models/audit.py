"""
Append-only audit tables for content protection.

Rows are inserted and never updated; there is no ORM relationship back to
User so audit history survives independently of account state changes.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from lessonguard.database import Base, DB_SCHEMA


class SuspiciousActivity(Base):
    """
    A client-reported tamper/exfiltration signal.

    These are advisory, unverified signals (the client may lie or be
    silenced), stored for review and never used as proof.
    """

    __tablename__ = "suspicious_activities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    content_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    client_context: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    client_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("idx_suspicious_user_received", "user_id", "received_at"),
        {"schema": DB_SCHEMA}
    )

    def __repr__(self) -> str:
        return f"<SuspiciousActivity user_id={self.user_id} type={self.activity_type}>"


class ContentAccessLog(Base):
    """One row per granted text read or playback token issuance."""

    __tablename__ = "content_access_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    content_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    access_kind: Mapped[str] = mapped_column(String(20), nullable=False)  # "text" or "playback"
    token_prefix: Mapped[str] = mapped_column(String(16), nullable=False)
    device_fingerprint: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    accessed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("idx_access_logs_content", "content_id", "accessed_at"),
        {"schema": DB_SCHEMA}
    )
