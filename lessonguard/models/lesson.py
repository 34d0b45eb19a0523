"""
SQLAlchemy model for lessons.

Only the columns needed for content protection are mapped here; lesson
authoring, ordering and navigation belong to the content management side.

The EncryptedContent envelope is stored alongside the parent lesson record
and is deleted with it.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, LargeBinary, String, Text, Enum as SQLAEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from lessonguard.database import Base, DB_SCHEMA


class LessonType(str, Enum):
    """How a lesson's protected payload is delivered."""
    TEXT = "text"
    VIDEO = "video"


class Lesson(Base):
    """
    Lesson model.

    Free lessons keep their body in markdown_content. Premium lessons keep it
    only in the encrypted_* columns (AES-256-GCM, content key wrapped under a
    versioned master key). Every lesson carries a SHA-256 content_hash.

    Attributes:
        id: Unique identifier (UUID4)
        title: Lesson title
        lesson_type: text or video
        premium: Whether an active subscription is required
        markdown_content: Plaintext body (free lessons only)
        video_path: Media file path relative to MEDIA_STORAGE_PATH (video lessons)
        encrypted_content: AES-GCM ciphertext without the tag
        encryption_iv: 96-bit nonce, fresh for every encryption
        encryption_tag: 128-bit GCM authentication tag
        wrapped_key: Content key encrypted under the master key
        key_version: Master key version that produced wrapped_key
        content_hash: Hex SHA-256 of the plaintext body
    """

    __tablename__ = "lessons"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    lesson_type: Mapped[LessonType] = mapped_column(
        SQLAEnum(LessonType, name="lessontype", schema=DB_SCHEMA, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=LessonType.TEXT,
        server_default="text"
    )

    premium: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false"
    )

    markdown_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    video_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # EncryptedContent envelope
    encrypted_content: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)
    encryption_iv: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)
    encryption_tag: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)
    wrapped_key: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)
    key_version: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    content_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("idx_lessons_premium", "premium"),
        {"schema": DB_SCHEMA}
    )

    def __repr__(self) -> str:
        return (
            f"<Lesson id={self.id} type={self.lesson_type} "
            f"premium={self.premium} encrypted={self.is_encrypted}>"
        )

    @property
    def is_encrypted(self) -> bool:
        return self.encrypted_content is not None
