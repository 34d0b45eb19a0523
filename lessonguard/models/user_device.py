"""
SQLAlchemy model for registered playback devices.
"""
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lessonguard.database import Base, DB_SCHEMA

if TYPE_CHECKING:
    from lessonguard.models.user import User


class UserDevice(Base):
    """
    A device fingerprint a user has watched protected video from.

    Counts toward MAX_DEVICES_PER_USER while is_active is set.
    """

    __tablename__ = "user_devices"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey(f"{DB_SCHEMA}.users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true"
    )

    last_used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    user: Mapped["User"] = relationship("User", back_populates="devices")

    __table_args__ = (
        Index("idx_user_devices_user_fingerprint", "user_id", "fingerprint", unique=True),
        {"schema": DB_SCHEMA}
    )

    def __repr__(self) -> str:
        return f"<UserDevice user_id={self.user_id} fingerprint={self.fingerprint[:8]} active={self.is_active}>"
