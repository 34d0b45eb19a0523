"""
Database service for the records content protection reads and writes:
users, lessons, devices and the audit tables.
"""
from uuid import UUID
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update
from fastapi import HTTPException, status

from lessonguard.models.user import User
from lessonguard.models.lesson import Lesson
from lessonguard.models.user_device import UserDevice
from lessonguard.models.audit import SuspiciousActivity, ContentAccessLog
from lessonguard.utils.logger import get_logger

logger = get_logger("database_service")


class DatabaseService:
    """Service for database operations used by content protection."""

    # =========================================================================
    # Users and lessons
    # =========================================================================

    async def get_user_by_id(self, db: AsyncSession, user_id: UUID) -> Optional[User]:
        """
        Retrieve a user by ID.

        Args:
            db: Database session
            user_id: UUID of the user

        Returns:
            User if found, None otherwise
        """
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_lesson_by_id(self, db: AsyncSession, lesson_id: UUID) -> Optional[Lesson]:
        """
        Retrieve a lesson by ID.

        Args:
            db: Database session
            lesson_id: UUID of the lesson

        Returns:
            Lesson if found, None otherwise
        """
        result = await db.execute(select(Lesson).where(Lesson.id == lesson_id))
        lesson = result.scalar_one_or_none()

        if lesson is None:
            logger.info("Lesson not found", lesson_id=str(lesson_id))

        return lesson

    async def get_unencrypted_premium_lessons(self, db: AsyncSession) -> Sequence[Lesson]:
        """Premium lessons whose body is still stored as plaintext."""
        result = await db.execute(
            select(Lesson).where(
                Lesson.premium.is_(True),
                Lesson.encrypted_content.is_(None),
                Lesson.markdown_content.is_not(None),
            )
        )
        return result.scalars().all()

    async def update_lesson_content(
        self,
        db: AsyncSession,
        lesson: Lesson,
        values: Dict[str, Any]
    ) -> Lesson:
        """
        Overwrite the content columns of a lesson.

        Args:
            db: Database session
            lesson: Lesson to update
            values: Column name -> value

        Returns:
            Updated lesson

        Raises:
            HTTPException: If database operation fails
        """
        try:
            for column, value in values.items():
                setattr(lesson, column, value)
            lesson.updated_at = datetime.now(timezone.utc)
            await db.flush()

            logger.info(
                "Lesson content updated",
                lesson_id=str(lesson.id),
                encrypted=lesson.is_encrypted
            )
            return lesson

        except Exception as e:
            logger.error(
                "Failed to update lesson content",
                lesson_id=str(lesson.id),
                error=str(e),
                exc_info=True
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to update lesson content"
            )

    # =========================================================================
    # Devices
    # =========================================================================

    async def get_device(
        self,
        db: AsyncSession,
        user_id: UUID,
        fingerprint: str
    ) -> Optional[UserDevice]:
        result = await db.execute(
            select(UserDevice).where(
                UserDevice.user_id == user_id,
                UserDevice.fingerprint == fingerprint,
            )
        )
        return result.scalar_one_or_none()

    async def count_active_devices(self, db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(
            select(func.count(UserDevice.id)).where(
                UserDevice.user_id == user_id,
                UserDevice.is_active.is_(True),
            )
        )
        return result.scalar_one()

    async def upsert_device(
        self,
        db: AsyncSession,
        user_id: UUID,
        fingerprint: str
    ) -> UserDevice:
        """
        Register a device or mark an existing one active and recently used.
        """
        now = datetime.now(timezone.utc)
        device = await self.get_device(db, user_id, fingerprint)

        if device is None:
            device = UserDevice(
                user_id=user_id,
                fingerprint=fingerprint,
                is_active=True,
                last_used_at=now,
            )
            db.add(device)
            logger.info("Registered new device", user_id=str(user_id), fingerprint=fingerprint[:8])
        else:
            device.is_active = True
            device.last_used_at = now

        await db.flush()
        return device

    async def deactivate_device(
        self,
        db: AsyncSession,
        user_id: UUID,
        fingerprint: str
    ) -> int:
        result = await db.execute(
            update(UserDevice)
            .where(UserDevice.user_id == user_id, UserDevice.fingerprint == fingerprint)
            .values(is_active=False)
        )
        return result.rowcount

    # =========================================================================
    # Audit (append-only)
    # =========================================================================

    async def add_suspicious_activity(
        self,
        db: AsyncSession,
        activity: SuspiciousActivity
    ) -> SuspiciousActivity:
        """
        Append a suspicious activity row.

        Raises:
            HTTPException: If database operation fails
        """
        try:
            db.add(activity)
            await db.flush()
            return activity
        except Exception as e:
            logger.error(
                "Failed to store suspicious activity",
                user_id=str(activity.user_id),
                error=str(e),
                exc_info=True
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to log activity"
            )

    async def count_suspicious_activities_since(
        self,
        db: AsyncSession,
        user_id: UUID,
        since: datetime
    ) -> int:
        result = await db.execute(
            select(func.count(SuspiciousActivity.id)).where(
                SuspiciousActivity.user_id == user_id,
                SuspiciousActivity.received_at >= since,
            )
        )
        return result.scalar_one()

    async def add_access_log(
        self,
        db: AsyncSession,
        entry: ContentAccessLog
    ) -> None:
        db.add(entry)
        await db.flush()


db_service = DatabaseService()
