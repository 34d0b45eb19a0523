"""
Entitlement oracle: answers "may user U access content C".

The subscription/payment system is an external collaborator; its state is
read from the users table. Decisions carry a machine-readable denial reason
so the viewer can show distinct messaging (upsell vs. device limit vs.
missing content).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lessonguard.config import settings
from lessonguard.database import get_db
from lessonguard.models.lesson import Lesson
from lessonguard.services.database import db_service
from lessonguard.services.device_fingerprint import DeviceFingerprintService
from lessonguard.utils.logger import get_logger

logger = get_logger("entitlement")


class DenialReason(str, Enum):
    """Why access was refused."""
    SUBSCRIPTION_REQUIRED = "subscription_required"
    DEVICE_LIMIT_EXCEEDED = "device_limit_exceeded"
    CONTENT_NOT_FOUND = "content_not_found"


DENIAL_MESSAGES = {
    DenialReason.SUBSCRIPTION_REQUIRED: "An active subscription is required to access this lesson.",
    DenialReason.DEVICE_LIMIT_EXCEEDED: "Device limit reached. Please log out from another device.",
    DenialReason.CONTENT_NOT_FOUND: "Lesson not found.",
}


class AccessDeniedError(Exception):
    """Raised when the entitlement oracle refuses access. Never retried automatically."""

    def __init__(self, reason: DenialReason, message: Optional[str] = None):
        self.reason = DenialReason(reason)
        self.message = message or DENIAL_MESSAGES[self.reason]
        super().__init__(self.message)


@dataclass(frozen=True)
class EntitlementDecision:
    """Outcome of an entitlement check; lesson is set whenever it exists."""
    allowed: bool
    reason: Optional[DenialReason] = None
    lesson: Optional[Lesson] = None

    @classmethod
    def grant(cls, lesson: Lesson) -> "EntitlementDecision":
        return cls(allowed=True, lesson=lesson)

    @classmethod
    def deny(cls, reason: DenialReason, lesson: Optional[Lesson] = None) -> "EntitlementDecision":
        return cls(allowed=False, reason=reason, lesson=lesson)

    def raise_for_denial(self) -> Lesson:
        """Return the lesson if allowed, otherwise raise AccessDeniedError."""
        if not self.allowed:
            raise AccessDeniedError(self.reason)
        return self.lesson


class EntitlementOracle(ABC):
    """Collaborator interface consumed by the token service and gateway."""

    @abstractmethod
    async def can_access(
        self,
        user_id: UUID,
        content_id: UUID,
        device_fingerprint: Optional[str] = None,
    ) -> EntitlementDecision:
        """
        Decide whether user_id may access content_id.

        Args:
            user_id: Requesting user
            content_id: Lesson id
            device_fingerprint: Device to admit against the device limit;
                None skips device checks (text content)
        """
        pass


class SubscriptionEntitlement(EntitlementOracle):
    """
    Entitlement backed by subscription columns and the device registry.

    Rules:
    - Missing lesson -> content_not_found
    - Free lesson -> allowed for any authenticated user
    - Premium lesson -> admin, or ACTIVE subscription not past its end date
    - With a device fingerprint -> device must be admitted under max_devices
    """

    def __init__(self, db: AsyncSession, max_devices: int = 2):
        self.db = db
        self.max_devices = max_devices
        self.devices = DeviceFingerprintService(db)

    async def can_access(
        self,
        user_id: UUID,
        content_id: UUID,
        device_fingerprint: Optional[str] = None,
    ) -> EntitlementDecision:
        lesson = await db_service.get_lesson_by_id(self.db, content_id)
        if lesson is None:
            return EntitlementDecision.deny(DenialReason.CONTENT_NOT_FOUND)

        if lesson.premium:
            user = await db_service.get_user_by_id(self.db, user_id)
            if user is None or not user.is_active or not user.has_active_subscription():
                logger.info(
                    "Premium access denied",
                    user_id=str(user_id),
                    content_id=str(content_id),
                    subscription=getattr(user, "subscription_status", None),
                )
                return EntitlementDecision.deny(DenialReason.SUBSCRIPTION_REQUIRED, lesson)

        if device_fingerprint is not None:
            if not await self.devices.admit(user_id, device_fingerprint, self.max_devices):
                return EntitlementDecision.deny(DenialReason.DEVICE_LIMIT_EXCEEDED, lesson)

        return EntitlementDecision.grant(lesson)


def get_entitlement(db: AsyncSession = Depends(get_db)) -> EntitlementOracle:
    """Dependency returning the request-scoped entitlement oracle."""
    return SubscriptionEntitlement(db, max_devices=settings.MAX_DEVICES_PER_USER)
