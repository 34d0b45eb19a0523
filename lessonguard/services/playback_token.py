"""
Playback Token Service.

Issues short-lived, single-content-scoped credentials for video playback
after an entitlement check, and validates them on every media request.

Tokens:
- 256 bits from the secrets module, URL-safe base64
- stored only as their SHA-256 hash
- valid for exactly one content id (and optionally one device)
- expire after PLAYBACK_TOKEN_TTL_MINUTES; never renewed implicitly
"""
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import Request

from lessonguard.services.entitlement import AccessDeniedError, EntitlementOracle
from lessonguard.services.token_store import PlaybackTokenRecord, TokenStore
from lessonguard.utils.logger import get_logger, mask_token

logger = get_logger("playback_token")

TOKEN_BYTES = 32  # 256 bits
MIN_TTL_MINUTES = 5
MAX_TTL_MINUTES = 30


class TokenInvalidReason(str, Enum):
    UNKNOWN = "unknown"
    EXPIRED = "expired"
    CONTENT_MISMATCH = "content_mismatch"
    DEVICE_MISMATCH = "device_mismatch"
    REVOKED = "revoked"


class TokenInvalidError(Exception):
    """Raised when a playback token fails validation."""

    def __init__(self, reason: TokenInvalidReason):
        self.reason = TokenInvalidReason(reason)
        super().__init__(f"Playback token invalid: {self.reason.value}")


@dataclass(frozen=True)
class IssuedPlaybackToken:
    """What the viewer receives: the token and the media URL it unlocks."""
    token: str
    content_id: UUID
    playback_url: str
    expires_at: datetime


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlaybackTokenService:
    """
    Issues and validates playback tokens.

    Args:
        store: Token record storage
        media_base_url: Public base URL of the media streaming endpoint
        ttl_minutes: Token lifetime, 5-30 minutes
        bind_device: Bind tokens to the requesting device fingerprint
        clock: Returns the current aware UTC datetime (injectable for tests)
    """

    def __init__(
        self,
        store: TokenStore,
        media_base_url: str,
        ttl_minutes: int = 15,
        bind_device: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not MIN_TTL_MINUTES <= ttl_minutes <= MAX_TTL_MINUTES:
            raise ValueError(
                f"Token TTL must be between {MIN_TTL_MINUTES} and {MAX_TTL_MINUTES} minutes"
            )
        self.store = store
        self.media_base_url = media_base_url.rstrip("/")
        self.ttl = timedelta(minutes=ttl_minutes)
        self.bind_device = bind_device
        self.clock = clock

    def media_url(self, content_id: UUID, token: str) -> str:
        return f"{self.media_base_url}/media/{content_id}/stream?token={quote(token, safe='')}"

    async def issue_token(
        self,
        user_id: UUID,
        content_id: UUID,
        entitlement: EntitlementOracle,
        device_fingerprint: Optional[str] = None,
    ) -> IssuedPlaybackToken:
        """
        Issue a playback token after an entitlement check.

        Args:
            user_id: Requesting user
            content_id: Lesson to unlock
            entitlement: Oracle deciding access
            device_fingerprint: Requesting device; counted against the device
                limit and bound to the token when bind_device is set

        Returns:
            IssuedPlaybackToken with the tokenised media URL

        Raises:
            AccessDeniedError: If the oracle denies access
        """
        decision = await entitlement.can_access(user_id, content_id, device_fingerprint)
        if not decision.allowed:
            logger.info(
                "Playback token denied",
                user_id=str(user_id),
                content_id=str(content_id),
                reason=decision.reason.value,
            )
            raise AccessDeniedError(decision.reason)

        token = secrets.token_urlsafe(TOKEN_BYTES)
        issued_at = self.clock()
        record = PlaybackTokenRecord(
            token_hash=hash_token(token),
            content_id=content_id,
            user_id=user_id,
            issued_at=issued_at,
            expires_at=issued_at + self.ttl,
            device_fingerprint=device_fingerprint if self.bind_device else None,
        )
        await self.store.put(record)

        logger.info(
            "Playback token issued",
            user_id=str(user_id),
            content_id=str(content_id),
            token_prefix=mask_token(token),
            expires_at=record.expires_at.isoformat(),
        )

        return IssuedPlaybackToken(
            token=token,
            content_id=content_id,
            playback_url=self.media_url(content_id, token),
            expires_at=record.expires_at,
        )

    async def require_valid(
        self,
        token: str,
        content_id: UUID,
        device_fingerprint: Optional[str] = None,
    ) -> PlaybackTokenRecord:
        """
        Validate a token for one content item.

        Raises:
            TokenInvalidError: With the first failing check as the reason
        """
        record = await self.store.get(hash_token(token)) if token else None
        if record is None:
            raise TokenInvalidError(TokenInvalidReason.UNKNOWN)
        if record.revoked:
            raise TokenInvalidError(TokenInvalidReason.REVOKED)
        if record.is_expired(self.clock()):
            raise TokenInvalidError(TokenInvalidReason.EXPIRED)
        if record.content_id != content_id:
            logger.warning(
                "Playback token used for other content",
                token_prefix=mask_token(token),
                token_content_id=str(record.content_id),
                requested_content_id=str(content_id),
            )
            raise TokenInvalidError(TokenInvalidReason.CONTENT_MISMATCH)
        if record.device_fingerprint is not None and record.device_fingerprint != device_fingerprint:
            raise TokenInvalidError(TokenInvalidReason.DEVICE_MISMATCH)
        return record

    async def validate_token(
        self,
        token: str,
        content_id: UUID,
        device_fingerprint: Optional[str] = None,
    ) -> bool:
        """True only if every check passes."""
        try:
            await self.require_valid(token, content_id, device_fingerprint)
        except TokenInvalidError as e:
            logger.debug("Playback token rejected", reason=e.reason.value)
            return False
        return True

    async def revoke_token(self, token: str) -> bool:
        revoked = await self.store.revoke(hash_token(token))
        if revoked:
            logger.info("Playback token revoked", token_prefix=mask_token(token))
        return revoked

    async def revoke_user(self, user_id: UUID) -> int:
        """Revoke every outstanding token of a user (security incident)."""
        count = await self.store.revoke_user(user_id)
        logger.warning("Revoked all playback tokens for user", user_id=str(user_id), count=count)
        return count


def create_playback_token_service(store: Optional[TokenStore] = None) -> PlaybackTokenService:
    """Build the service from settings."""
    from lessonguard.config import settings
    from lessonguard.services.token_store import InMemoryTokenStore

    return PlaybackTokenService(
        store=store or InMemoryTokenStore(),
        media_base_url=settings.MEDIA_BASE_URL,
        ttl_minutes=settings.PLAYBACK_TOKEN_TTL_MINUTES,
        bind_device=settings.PLAYBACK_BIND_DEVICE,
    )


def get_token_service(request: Request) -> PlaybackTokenService:
    """
    Dependency to get the playback token service from app state.

    Raises:
        RuntimeError: If the service was not initialized at startup
    """
    service = getattr(request.app.state, "token_service", None)
    if service is None:
        raise RuntimeError("Playback token service is not initialized")
    return service
