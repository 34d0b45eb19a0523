"""
Device fingerprinting for playback device limits.

The fingerprint is a SHA-256 over the user agent plus whatever the viewer
volunteers in X-Device-Data. Content negotiation headers are left out: a
media element's range requests send different Accept-Encoding and
Accept-Language values than the fetch that issued its token.

It is a coarse, spoofable identifier used only to count devices and bind
tokens, never as an authentication factor.
"""
import hashlib
import json
from typing import Mapping
from uuid import UUID

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from lessonguard.services.database import db_service
from lessonguard.utils.logger import get_logger

logger = get_logger("device_fingerprint")

# Headers a browser sends unchanged on every request from the same device
FINGERPRINT_HEADERS = ("user-agent", "x-device-data")


def fingerprint_headers(headers: Mapping[str, str]) -> str:
    """
    Compute a device fingerprint from request headers.

    Args:
        headers: Case-insensitive header mapping (e.g. request.headers)

    Returns:
        Hex SHA-256 fingerprint
    """
    material = {name: headers.get(name, "") for name in FINGERPRINT_HEADERS}
    encoded = json.dumps(material, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


class DeviceFingerprintService:
    """Tracks the devices each user has played protected content on."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def fingerprint_request(request: Request) -> str:
        return fingerprint_headers(request.headers)

    async def register_device(self, user_id: UUID, fingerprint: str) -> None:
        """Register a device, or reactivate and touch a known one."""
        await db_service.upsert_device(self.db, user_id, fingerprint)

    async def verify_device(self, user_id: UUID, fingerprint: str) -> bool:
        """
        Check whether the device is registered and active.

        Touches last_used_at on success.
        """
        device = await db_service.get_device(self.db, user_id, fingerprint)
        if device is None or not device.is_active:
            return False

        await db_service.upsert_device(self.db, user_id, fingerprint)
        return True

    async def active_device_count(self, user_id: UUID) -> int:
        return await db_service.count_active_devices(self.db, user_id)

    async def deactivate_device(self, user_id: UUID, fingerprint: str) -> bool:
        """Deactivate a device so another can take its slot."""
        updated = await db_service.deactivate_device(self.db, user_id, fingerprint)
        if updated:
            logger.info("Device deactivated", user_id=str(user_id), fingerprint=fingerprint[:8])
        return bool(updated)

    async def admit(self, user_id: UUID, fingerprint: str, max_devices: int) -> bool:
        """
        Admit a device for playback.

        Known active devices are always admitted. New devices are registered
        while the user is below max_devices.

        Returns:
            False when the device limit is reached and the device is new
        """
        if await self.verify_device(user_id, fingerprint):
            return True

        active = await self.active_device_count(user_id)
        if active >= max_devices:
            logger.warning(
                "Device limit reached",
                user_id=str(user_id),
                active_devices=active,
                max_devices=max_devices,
            )
            return False

        await self.register_device(user_id, fingerprint)
        return True
