"""
Unit tests for the subscription entitlement oracle and device registry.
"""
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from lessonguard.models.user import SubscriptionStatus, UserRole
from lessonguard.services.device_fingerprint import DeviceFingerprintService, fingerprint_headers
from lessonguard.services.entitlement import (
    AccessDeniedError,
    DenialReason,
    EntitlementDecision,
    SubscriptionEntitlement,
)
from tests.fakes import make_lesson, make_user


@pytest.fixture
def oracle(fake_db, db_session):
    return SubscriptionEntitlement(db_session, max_devices=2)


# =============================================================================
# Subscription rules
# =============================================================================


class TestHasActiveSubscription:
    def test_lifetime_active(self):
        assert make_user(SubscriptionStatus.ACTIVE).has_active_subscription()

    def test_active_until_end_date(self):
        now = datetime(2026, 5, 1, tzinfo=timezone.utc)
        user = make_user(SubscriptionStatus.ACTIVE, subscription_end_date=now + timedelta(days=1))

        assert user.has_active_subscription(now)
        assert not user.has_active_subscription(now + timedelta(days=2))

    @pytest.mark.parametrize("status", [
        SubscriptionStatus.FREE,
        SubscriptionStatus.CANCELLED,
        SubscriptionStatus.EXPIRED,
    ])
    def test_inactive_statuses(self, status):
        assert not make_user(status).has_active_subscription()

    def test_admin_always_qualifies(self):
        assert make_user(SubscriptionStatus.FREE, role=UserRole.ADMIN).has_active_subscription()


class TestSubscriptionEntitlement:
    @pytest.mark.asyncio
    async def test_missing_lesson(self, oracle, active_user):
        decision = await oracle.can_access(active_user.id, uuid.uuid4())

        assert not decision.allowed
        assert decision.reason == DenialReason.CONTENT_NOT_FOUND
        assert decision.lesson is None

    @pytest.mark.asyncio
    async def test_free_lesson_for_free_user(self, oracle, fake_db, free_user):
        lesson = fake_db.add_lesson(make_lesson(premium=False))

        decision = await oracle.can_access(free_user.id, lesson.id)

        assert decision.allowed
        assert decision.lesson is lesson

    @pytest.mark.asyncio
    async def test_premium_lesson_for_free_user(self, oracle, fake_db, free_user):
        lesson = fake_db.add_lesson(make_lesson(premium=True))

        decision = await oracle.can_access(free_user.id, lesson.id)

        assert not decision.allowed
        assert decision.reason == DenialReason.SUBSCRIPTION_REQUIRED
        assert decision.lesson is lesson

    @pytest.mark.asyncio
    async def test_premium_lesson_for_subscriber(self, oracle, fake_db, active_user):
        lesson = fake_db.add_lesson(make_lesson(premium=True))

        assert (await oracle.can_access(active_user.id, lesson.id)).allowed

    @pytest.mark.asyncio
    async def test_lapsed_subscription(self, oracle, fake_db):
        user = fake_db.add_user(make_user(
            SubscriptionStatus.ACTIVE,
            subscription_end_date=datetime.now(timezone.utc) - timedelta(days=1),
        ))
        lesson = fake_db.add_lesson(make_lesson(premium=True))

        decision = await oracle.can_access(user.id, lesson.id)

        assert decision.reason == DenialReason.SUBSCRIPTION_REQUIRED

    @pytest.mark.asyncio
    async def test_deactivated_account(self, oracle, fake_db):
        user = fake_db.add_user(make_user(SubscriptionStatus.ACTIVE, is_active=False))
        lesson = fake_db.add_lesson(make_lesson(premium=True))

        decision = await oracle.can_access(user.id, lesson.id)

        assert decision.reason == DenialReason.SUBSCRIPTION_REQUIRED

    @pytest.mark.asyncio
    async def test_unknown_user(self, oracle, fake_db):
        lesson = fake_db.add_lesson(make_lesson(premium=True))

        decision = await oracle.can_access(uuid.uuid4(), lesson.id)

        assert decision.reason == DenialReason.SUBSCRIPTION_REQUIRED

    @pytest.mark.asyncio
    async def test_device_limit(self, oracle, fake_db, active_user):
        lesson = fake_db.add_lesson(make_lesson(premium=True))

        assert (await oracle.can_access(active_user.id, lesson.id, "laptop")).allowed
        assert (await oracle.can_access(active_user.id, lesson.id, "phone")).allowed

        decision = await oracle.can_access(active_user.id, lesson.id, "tablet")
        assert not decision.allowed
        assert decision.reason == DenialReason.DEVICE_LIMIT_EXCEEDED

        # Known devices keep working
        assert (await oracle.can_access(active_user.id, lesson.id, "laptop")).allowed

    @pytest.mark.asyncio
    async def test_subscription_checked_before_devices(self, oracle, fake_db, free_user):
        lesson = fake_db.add_lesson(make_lesson(premium=True))

        decision = await oracle.can_access(free_user.id, lesson.id, "laptop")

        assert decision.reason == DenialReason.SUBSCRIPTION_REQUIRED
        assert fake_db.devices == {}

    @pytest.mark.asyncio
    async def test_no_fingerprint_skips_device_check(self, oracle, fake_db, active_user):
        lesson = fake_db.add_lesson(make_lesson(premium=True))
        for fingerprint in ("laptop", "phone"):
            await fake_db.upsert_device(None, active_user.id, fingerprint)

        assert (await oracle.can_access(active_user.id, lesson.id)).allowed


class TestEntitlementDecision:
    def test_raise_for_denial(self):
        decision = EntitlementDecision.deny(DenialReason.DEVICE_LIMIT_EXCEEDED)

        with pytest.raises(AccessDeniedError) as exc_info:
            decision.raise_for_denial()
        assert exc_info.value.reason == DenialReason.DEVICE_LIMIT_EXCEEDED
        assert "Device limit" in exc_info.value.message

    def test_grant_returns_lesson(self):
        lesson = make_lesson()

        assert EntitlementDecision.grant(lesson).raise_for_denial() is lesson


# =============================================================================
# Device registry
# =============================================================================


class TestDeviceFingerprint:
    def test_stable_digest(self):
        headers = {"user-agent": "Mozilla/5.0", "accept-language": "en-GB"}

        assert fingerprint_headers(headers) == fingerprint_headers(dict(headers))
        assert len(fingerprint_headers(headers)) == 64

    def test_device_data_changes_fingerprint(self):
        base = {"user-agent": "Mozilla/5.0"}

        assert fingerprint_headers(base) != fingerprint_headers({**base, "x-device-data": "tz=UTC"})

    def test_content_negotiation_headers_ignored(self):
        fetch = {"user-agent": "Mozilla/5.0", "accept-encoding": "gzip, deflate, br", "accept-language": "en-GB"}
        media = {"user-agent": "Mozilla/5.0", "accept-encoding": "identity;q=1, *;q=0", "accept-language": "sl-SI"}

        assert fingerprint_headers(fetch) == fingerprint_headers(media)

    @pytest.mark.asyncio
    async def test_deactivate_frees_slot(self, fake_db, db_session, active_user):
        devices = DeviceFingerprintService(db_session)
        assert await devices.admit(active_user.id, "laptop", max_devices=1)
        assert not await devices.admit(active_user.id, "phone", max_devices=1)

        assert await devices.deactivate_device(active_user.id, "laptop")

        assert await devices.active_device_count(active_user.id) == 0
        assert await devices.admit(active_user.id, "phone", max_devices=1)

    @pytest.mark.asyncio
    async def test_deactivate_unknown_device(self, fake_db, db_session, active_user):
        devices = DeviceFingerprintService(db_session)

        assert not await devices.deactivate_device(active_user.id, "never-seen")

    @pytest.mark.asyncio
    async def test_verify_device(self, fake_db, db_session, active_user):
        devices = DeviceFingerprintService(db_session)
        assert not await devices.verify_device(active_user.id, "laptop")

        await devices.register_device(active_user.id, "laptop")

        assert await devices.verify_device(active_user.id, "laptop")
