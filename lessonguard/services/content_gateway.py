"""
Content Access Gateway.

Single entry point that turns a content request into protected payload
delivery:

- text lessons are materialised server side (decrypted when premium) and
  returned once, with an opaque access token for audit correlation
- video lessons never leave through this path as bytes; the caller gets a
  playback token and the tokenised media URL together, and the streaming
  endpoint checks that token on every range request
"""
import secrets
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lessonguard.database import get_db
from lessonguard.models.audit import ContentAccessLog
from lessonguard.models.lesson import Lesson, LessonType
from lessonguard.services.database import db_service
from lessonguard.services.entitlement import (
    AccessDeniedError,
    DenialReason,
    EntitlementOracle,
    get_entitlement,
)
from lessonguard.services.envelope_encryption import (
    EncryptedContent,
    EnvelopeEncryptionService,
    IntegrityError,
    get_encryption_service,
    hash_content,
    verify_content_hash,
)
from lessonguard.services.playback_token import (
    IssuedPlaybackToken,
    PlaybackTokenService,
    get_token_service,
)
from lessonguard.utils.logger import get_logger

logger = get_logger("content_gateway")

ACCESS_TOKEN_BYTES = 32

_CLEARED_ENVELOPE = {
    "encrypted_content": None,
    "encryption_iv": None,
    "encryption_tag": None,
    "wrapped_key": None,
    "key_version": None,
}


@dataclass
class ContentAccessResult:
    """Either a text body or a playback grant, never both."""
    content_id: UUID
    lesson_type: LessonType
    content: Optional[str] = None
    access_token: Optional[str] = None
    playback: Optional[IssuedPlaybackToken] = None


@dataclass
class MigrationReport:
    total: int = 0
    encrypted: int = 0
    dry_run: bool = True
    errors: List[Dict[str, str]] = field(default_factory=list)


class ContentAccessGateway:
    """
    Resolves content requests for one database session.

    Args:
        db: Database session
        entitlement: Oracle deciding access
        encryption: Envelope encryption service
        tokens: Playback token service
    """

    def __init__(
        self,
        db: AsyncSession,
        entitlement: EntitlementOracle,
        encryption: EnvelopeEncryptionService,
        tokens: PlaybackTokenService,
    ):
        self.db = db
        self.entitlement = entitlement
        self.encryption = encryption
        self.tokens = tokens

    async def get_content(
        self,
        user_id: UUID,
        content_id: UUID,
        device_fingerprint: Optional[str] = None,
    ) -> ContentAccessResult:
        """
        Resolve a content request.

        Raises:
            AccessDeniedError: Entitlement refused or lesson missing
            IntegrityError: Stored content failed verification
            UnsupportedKeyVersionError: Content wrapped under an unknown key
        """
        lesson = await db_service.get_lesson_by_id(self.db, content_id)
        if lesson is None:
            raise AccessDeniedError(DenialReason.CONTENT_NOT_FOUND)

        if lesson.lesson_type == LessonType.VIDEO:
            playback = await self.issue_playback(user_id, content_id, device_fingerprint)
            return ContentAccessResult(
                content_id=content_id,
                lesson_type=LessonType.VIDEO,
                playback=playback,
            )

        decision = await self.entitlement.can_access(user_id, content_id)
        lesson = decision.raise_for_denial()

        content = await self._read_body(lesson)
        access_token = secrets.token_hex(ACCESS_TOKEN_BYTES)

        await db_service.add_access_log(
            self.db,
            ContentAccessLog(
                user_id=user_id,
                content_id=content_id,
                access_kind="text",
                token_prefix=access_token[:8],
                device_fingerprint=device_fingerprint,
            ),
        )

        logger.info(
            "Text content served",
            user_id=str(user_id),
            content_id=str(content_id),
            encrypted=lesson.is_encrypted,
        )

        return ContentAccessResult(
            content_id=content_id,
            lesson_type=LessonType.TEXT,
            content=content,
            access_token=access_token,
        )

    async def issue_playback(
        self,
        user_id: UUID,
        content_id: UUID,
        device_fingerprint: Optional[str] = None,
    ) -> IssuedPlaybackToken:
        """
        Issue a playback token and media URL for a video lesson.

        Raises:
            AccessDeniedError: Lesson is missing or has no video, or the
                entitlement oracle refused
        """
        lesson = await db_service.get_lesson_by_id(self.db, content_id)
        if lesson is None or lesson.lesson_type != LessonType.VIDEO or not lesson.video_path:
            raise AccessDeniedError(DenialReason.CONTENT_NOT_FOUND)

        issued = await self.tokens.issue_token(
            user_id, content_id, self.entitlement, device_fingerprint
        )

        await db_service.add_access_log(
            self.db,
            ContentAccessLog(
                user_id=user_id,
                content_id=content_id,
                access_kind="playback",
                token_prefix=issued.token[:8],
                device_fingerprint=device_fingerprint,
            ),
        )
        return issued

    async def _read_body(self, lesson: Lesson) -> str:
        if lesson.is_encrypted:
            return await self.encryption.decrypt(EncryptedContent.from_lesson(lesson))

        if lesson.premium:
            logger.warning("Premium lesson stored unencrypted", content_id=str(lesson.id))

        content = lesson.markdown_content or ""
        if lesson.content_hash and not verify_content_hash(content, lesson.content_hash):
            logger.error("Stored content hash mismatch", content_id=str(lesson.id))
            raise IntegrityError("Content hash mismatch")
        return content

    async def store_lesson_content(self, lesson_id: UUID, plaintext: str) -> Lesson:
        """
        Save a lesson body from the editor.

        Premium bodies are encrypted and the plaintext column cleared; free
        bodies are stored as plaintext. Both get a content hash.

        Raises:
            AccessDeniedError: If the lesson does not exist
            EncryptionError: If encryption fails
        """
        lesson = await db_service.get_lesson_by_id(self.db, lesson_id)
        if lesson is None:
            raise AccessDeniedError(DenialReason.CONTENT_NOT_FOUND)

        if lesson.premium:
            encrypted = await self.encryption.encrypt(plaintext, content_id=lesson.id)
            values = {**encrypted.to_columns(), "markdown_content": None}
        else:
            values = {
                **_CLEARED_ENVELOPE,
                "markdown_content": plaintext,
                "content_hash": hash_content(plaintext),
            }

        return await db_service.update_lesson_content(self.db, lesson, values)

    async def encrypt_existing_premium_lessons(self, dry_run: bool = True) -> MigrationReport:
        """
        Encrypt premium lessons still stored as plaintext.

        Args:
            dry_run: Only count candidates, write nothing

        Returns:
            MigrationReport with totals and per-lesson errors
        """
        lessons = await db_service.get_unencrypted_premium_lessons(self.db)
        report = MigrationReport(total=len(lessons), dry_run=dry_run)

        logger.info("Premium lesson encryption migration", total=report.total, dry_run=dry_run)

        if dry_run:
            return report

        for lesson in lessons:
            try:
                await self.store_lesson_content(lesson.id, lesson.markdown_content)
                report.encrypted += 1
            except Exception as e:
                logger.error(
                    "Failed to encrypt lesson",
                    content_id=str(lesson.id),
                    error=type(e).__name__,
                )
                report.errors.append({"lesson_id": str(lesson.id), "error": str(e)})

        logger.info(
            "Premium lesson encryption finished",
            encrypted=report.encrypted,
            failed=len(report.errors),
        )
        return report


def get_content_gateway(
    db: AsyncSession = Depends(get_db),
    entitlement: EntitlementOracle = Depends(get_entitlement),
    encryption: EnvelopeEncryptionService = Depends(get_encryption_service),
    tokens: PlaybackTokenService = Depends(get_token_service),
) -> ContentAccessGateway:
    """Dependency building a request-scoped gateway."""
    return ContentAccessGateway(db, entitlement, encryption, tokens)
