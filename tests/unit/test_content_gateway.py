"""
Unit tests for the content access gateway.
"""
import uuid

import pytest

from lessonguard.models.lesson import LessonType
from lessonguard.models.user import SubscriptionStatus
from lessonguard.services.content_gateway import ContentAccessGateway
from lessonguard.services.entitlement import AccessDeniedError, DenialReason, SubscriptionEntitlement
from lessonguard.services.envelope_encryption import IntegrityError, hash_content
from tests.fakes import make_lesson

BODY = "# Binary search\n\nInvariant: `lo <= target < hi`."


@pytest.fixture
def gateway(fake_db, db_session, encryption_service, token_service):
    return ContentAccessGateway(
        db_session,
        SubscriptionEntitlement(db_session, max_devices=2),
        encryption_service,
        token_service,
    )


# =============================================================================
# Storing lesson bodies
# =============================================================================


class TestStoreLessonContent:
    @pytest.mark.asyncio
    async def test_premium_body_encrypted(self, gateway, fake_db):
        lesson = fake_db.add_lesson(make_lesson(premium=True, markdown_content="old"))

        await gateway.store_lesson_content(lesson.id, BODY)

        assert lesson.markdown_content is None
        assert lesson.is_encrypted
        assert lesson.key_version == "v1"
        assert lesson.content_hash == hash_content(BODY)
        assert BODY.encode("utf-8") not in lesson.encrypted_content

    @pytest.mark.asyncio
    async def test_free_body_plaintext(self, gateway, fake_db, encryption_service):
        lesson = fake_db.add_lesson(make_lesson(premium=False))
        encrypted = await encryption_service.encrypt("stale", content_id=lesson.id)
        for column, value in encrypted.to_columns().items():
            setattr(lesson, column, value)

        await gateway.store_lesson_content(lesson.id, BODY)

        assert lesson.markdown_content == BODY
        assert lesson.content_hash == hash_content(BODY)
        assert not lesson.is_encrypted
        assert lesson.wrapped_key is None

    @pytest.mark.asyncio
    async def test_missing_lesson(self, gateway):
        with pytest.raises(AccessDeniedError):
            await gateway.store_lesson_content(uuid.uuid4(), BODY)


# =============================================================================
# Text content
# =============================================================================


class TestGetTextContent:
    @pytest.mark.asyncio
    async def test_premium_text_for_subscriber(self, gateway, fake_db, active_user):
        lesson = fake_db.add_lesson(make_lesson(premium=True))
        await gateway.store_lesson_content(lesson.id, BODY)

        result = await gateway.get_content(active_user.id, lesson.id)

        assert result.lesson_type == LessonType.TEXT
        assert result.content == BODY
        assert len(result.access_token) == 64
        assert result.playback is None

        assert len(fake_db.access_logs) == 1
        log = fake_db.access_logs[0]
        assert log.access_kind == "text"
        assert log.token_prefix == result.access_token[:8]

    @pytest.mark.asyncio
    async def test_access_tokens_differ_per_request(self, gateway, fake_db, active_user):
        lesson = fake_db.add_lesson(make_lesson(premium=True))
        await gateway.store_lesson_content(lesson.id, BODY)

        first = await gateway.get_content(active_user.id, lesson.id)
        second = await gateway.get_content(active_user.id, lesson.id)

        assert first.access_token != second.access_token

    @pytest.mark.asyncio
    async def test_premium_text_for_free_user(self, gateway, fake_db, free_user):
        lesson = fake_db.add_lesson(make_lesson(premium=True))
        await gateway.store_lesson_content(lesson.id, BODY)

        with pytest.raises(AccessDeniedError) as exc_info:
            await gateway.get_content(free_user.id, lesson.id)

        assert exc_info.value.reason == DenialReason.SUBSCRIPTION_REQUIRED
        assert fake_db.access_logs == []

    @pytest.mark.asyncio
    async def test_free_text_for_free_user(self, gateway, fake_db, free_user):
        lesson = fake_db.add_lesson(make_lesson(premium=False))
        await gateway.store_lesson_content(lesson.id, BODY)

        result = await gateway.get_content(free_user.id, lesson.id)

        assert result.content == BODY

    @pytest.mark.asyncio
    async def test_missing_lesson(self, gateway, active_user):
        with pytest.raises(AccessDeniedError) as exc_info:
            await gateway.get_content(active_user.id, uuid.uuid4())

        assert exc_info.value.reason == DenialReason.CONTENT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_tampered_ciphertext(self, gateway, fake_db, active_user):
        lesson = fake_db.add_lesson(make_lesson(premium=True))
        await gateway.store_lesson_content(lesson.id, BODY)
        lesson.encrypted_content = b"\x00" + lesson.encrypted_content[1:]

        with pytest.raises(IntegrityError):
            await gateway.get_content(active_user.id, lesson.id)
        assert fake_db.access_logs == []

    @pytest.mark.asyncio
    async def test_plaintext_hash_mismatch(self, gateway, fake_db, free_user):
        lesson = fake_db.add_lesson(make_lesson(
            premium=False,
            markdown_content="edited outside the editor",
            content_hash=hash_content(BODY),
        ))

        with pytest.raises(IntegrityError, match="hash"):
            await gateway.get_content(free_user.id, lesson.id)


# =============================================================================
# Video playback
# =============================================================================


class TestIssuePlayback:
    @pytest.mark.asyncio
    async def test_video_lesson_returns_grant(self, gateway, fake_db, active_user, token_service):
        lesson = fake_db.add_lesson(make_lesson(LessonType.VIDEO, video_path="intro.mp4"))

        result = await gateway.get_content(active_user.id, lesson.id, "laptop")

        assert result.lesson_type == LessonType.VIDEO
        assert result.content is None
        assert await token_service.validate_token(result.playback.token, lesson.id, "laptop")
        assert fake_db.access_logs[0].access_kind == "playback"

    @pytest.mark.asyncio
    async def test_text_lesson_has_no_playback(self, gateway, fake_db, active_user):
        lesson = fake_db.add_lesson(make_lesson(LessonType.TEXT))

        with pytest.raises(AccessDeniedError) as exc_info:
            await gateway.issue_playback(active_user.id, lesson.id)

        assert exc_info.value.reason == DenialReason.CONTENT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_video_without_file(self, gateway, fake_db, active_user):
        lesson = fake_db.add_lesson(make_lesson(LessonType.VIDEO, video_path=None))

        with pytest.raises(AccessDeniedError):
            await gateway.issue_playback(active_user.id, lesson.id)

    @pytest.mark.asyncio
    async def test_premium_video_for_free_user(self, gateway, fake_db, free_user, token_service):
        lesson = fake_db.add_lesson(make_lesson(LessonType.VIDEO, video_path="intro.mp4"))

        with pytest.raises(AccessDeniedError) as exc_info:
            await gateway.issue_playback(free_user.id, lesson.id, "laptop")

        assert exc_info.value.reason == DenialReason.SUBSCRIPTION_REQUIRED
        assert len(token_service.store) == 0


# =============================================================================
# Migration
# =============================================================================


class TestEncryptExistingPremiumLessons:
    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, gateway, fake_db):
        lesson = fake_db.add_lesson(make_lesson(premium=True, markdown_content=BODY))
        fake_db.add_lesson(make_lesson(premium=False, markdown_content=BODY))

        report = await gateway.encrypt_existing_premium_lessons(dry_run=True)

        assert report.total == 1
        assert report.encrypted == 0
        assert lesson.markdown_content == BODY

    @pytest.mark.asyncio
    async def test_encrypts_and_reports_failures(self, gateway, fake_db, active_user):
        good = fake_db.add_lesson(make_lesson(premium=True, markdown_content=BODY))
        empty = fake_db.add_lesson(make_lesson(premium=True, markdown_content=""))

        report = await gateway.encrypt_existing_premium_lessons(dry_run=False)

        assert report.total == 2
        assert report.encrypted == 1
        assert report.errors == [{"lesson_id": str(empty.id), "error": "Plaintext cannot be empty"}]
        assert good.is_encrypted
        assert (await gateway.get_content(active_user.id, good.id)).content == BODY

        # Second run finds nothing left except the failed lesson
        assert (await gateway.encrypt_existing_premium_lessons(dry_run=True)).total == 1
