"""
Audit sink for client-reported suspicious activity.

Reports are advisory and unverified. They are appended, counted, and
flagged for human review at a threshold; nothing here revokes access or
logs a user out.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from lessonguard.models.audit import SuspiciousActivity
from lessonguard.schemas.security import SuspiciousActivityEvent
from lessonguard.services.database import db_service
from lessonguard.utils.logger import get_logger

logger = get_logger("activity_audit")


@dataclass(frozen=True)
class AuditOutcome:
    recent_count: int
    flagged_for_review: bool


class ActivityAuditService:
    """
    Appends suspicious activity events and tracks per-user volume.

    Args:
        alert_threshold: Events within the window that flag a user for review
        window_hours: Length of the counting window
    """

    def __init__(self, alert_threshold: int = 3, window_hours: int = 24):
        self.alert_threshold = alert_threshold
        self.window = timedelta(hours=window_hours)

    async def record(
        self,
        db: AsyncSession,
        user_id: UUID,
        event: SuspiciousActivityEvent,
        user_agent: Optional[str] = None,
    ) -> AuditOutcome:
        """
        Append one event and return the user's recent event count.

        Raises:
            HTTPException: If the row cannot be stored
        """
        now = datetime.now(timezone.utc)
        row = SuspiciousActivity(
            user_id=user_id,
            content_id=event.content_id,
            activity_type=event.activity_type,
            details=event.details() or None,
            client_context=event.client_context or None,
            user_agent=(user_agent or "")[:500] or None,
            client_timestamp=event.timestamp,
            received_at=now,
        )
        await db_service.add_suspicious_activity(db, row)

        recent = await db_service.count_suspicious_activities_since(db, user_id, now - self.window)
        flagged = recent >= self.alert_threshold

        logger.info(
            "Suspicious activity recorded",
            user_id=str(user_id),
            content_id=str(event.content_id),
            activity_type=event.activity_type,
            recent_count=recent,
        )

        if flagged:
            logger.warning(
                "User flagged for suspicious activity review",
                user_id=str(user_id),
                recent_count=recent,
                window_hours=int(self.window.total_seconds() // 3600),
            )

        return AuditOutcome(recent_count=recent, flagged_for_review=flagged)


def get_activity_audit_service() -> ActivityAuditService:
    from lessonguard.config import settings

    return ActivityAuditService(
        alert_threshold=settings.SUSPICIOUS_ACTIVITY_ALERT_THRESHOLD,
        window_hours=settings.SUSPICIOUS_ACTIVITY_WINDOW_HOURS,
    )
