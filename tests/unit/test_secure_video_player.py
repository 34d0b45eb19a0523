"""
Unit tests for the secure video player orchestration.
"""
import asyncio
import random
import uuid
from datetime import date

import httpx
import pytest

from lessonguard.viewer.playback_client import PlaybackClient
from lessonguard.viewer.player import SecureVideoPlayer, ViewerIdentity
from lessonguard.viewer.state_machine import DetectorState
from tests.fakes import FakeViewerHost, RecordingReporter

CONTENT_ID = uuid.uuid4()
IDENTITY = ViewerIdentity(user_id=uuid.UUID("1f2e3d4c-0000-4000-8000-000000000000"), email="jane.doe@example.com")


class GrantServer:
    """MockTransport handler issuing numbered grants, or a fixed denial."""

    def __init__(self, denial=None):
        self.denial = denial
        self.issued = 0
        self.gate = None

    async def __call__(self, request):
        if self.gate is not None:
            await self.gate.wait()
        if self.denial is not None:
            return httpx.Response(403, json={"code": self.denial, "message": "denied"})
        self.issued += 1
        token = f"tok-{self.issued}"
        return httpx.Response(200, json={
            "playbackUrl": f"http://media.test/media/{CONTENT_ID}/stream?token={token}",
            "token": token,
            "expiresAt": "2026-02-01T10:15:00+00:00",
        })


def make_player(server, host=None):
    host = host or FakeViewerHost()
    client = PlaybackClient(httpx.AsyncClient(transport=httpx.MockTransport(server), base_url="http://test"))
    player = SecureVideoPlayer(
        host,
        client,
        RecordingReporter(host),
        IDENTITY,
        CONTENT_ID,
        rng=random.Random(3),
        today=date(2026, 3, 1),
    )
    return player, host


# =============================================================================
# Mount / unmount
# =============================================================================


class TestMount:
    @pytest.mark.asyncio
    async def test_mount_loads_grant_and_arms(self):
        server = GrantServer()
        player, host = make_player(server)

        assert await player.mount()

        assert host.media.src.endswith("token=tok-1")
        assert player.detector.state == DetectorState.ARMED
        assert host.watermarks == [("jane…@example.com | 1f2e3d4c | 2026-03-01", 20, 20)]
        assert player.mounted

    @pytest.mark.asyncio
    async def test_refused_grant_shows_upsell(self):
        player, host = make_player(GrantServer(denial="subscription_required"))

        assert not await player.mount()

        assert player.failure.kind == "upsell"
        assert host.warnings == [player.failure.message]
        assert host.media.src is None
        assert player.detector.state == DetectorState.IDLE
        assert host.active_listeners == 0

    @pytest.mark.asyncio
    async def test_device_limit_message(self):
        player, _ = make_player(GrantServer(denial="device_limit_exceeded"))

        await player.mount()

        assert player.failure.kind == "device_limit"
        assert "another device" in player.failure.message

    @pytest.mark.asyncio
    async def test_unmount_releases_everything(self):
        player, host = make_player(GrantServer())
        await player.mount()

        player.unmount()
        player.unmount()

        assert host.active_listeners == 0
        assert host.active_intervals == 0
        assert host.watermark_cleared
        assert player.detector.state == DetectorState.TORN_DOWN

    @pytest.mark.asyncio
    async def test_unmount_while_grant_pending(self):
        server = GrantServer()
        server.gate = asyncio.Event()
        player, host = make_player(server)

        mounting = asyncio.create_task(player.mount())
        await asyncio.sleep(0)
        player.unmount()
        server.gate.set()

        assert not await mounting
        assert host.media.src is None
        assert host.active_listeners == 0
        assert host.active_intervals == 0

    @pytest.mark.asyncio
    async def test_mount_twice(self):
        player, _ = make_player(GrantServer())
        await player.mount()

        with pytest.raises(RuntimeError):
            await player.mount()


# =============================================================================
# Playback
# =============================================================================


class TestPlayback:
    @pytest.mark.asyncio
    async def test_play_routed_through_detector(self):
        player, host = make_player(GrantServer())
        await player.mount()

        assert player.play()
        assert not host.media.paused

        host.dispatch("document", "keydown", key="PrintScreen")
        assert host.media.paused
        assert not player.play()

        player.acknowledge_warning()
        assert player.play()

    @pytest.mark.asyncio
    async def test_watermark_rotates_while_mounted(self):
        player, host = make_player(GrantServer())
        await player.mount()

        host.advance(90_000)

        assert len(host.watermarks) == 4


# =============================================================================
# Token expiry during playback
# =============================================================================


class TestMediaRejected:
    @pytest.mark.asyncio
    async def test_fresh_grant_loaded_once(self):
        server = GrantServer()
        player, host = make_player(server)
        await player.mount()

        assert await player.on_media_rejected()

        assert server.issued == 2
        assert host.media.src.endswith("token=tok-2")
        assert player.failure is None

    @pytest.mark.asyncio
    async def test_second_rejection_surfaces_failure(self):
        server = GrantServer()
        player, host = make_player(server)
        await player.mount()

        await player.on_media_rejected()
        assert not await player.on_media_rejected()

        assert server.issued == 2
        assert player.failure.kind == "expired"
        assert player.failure.can_retry

    @pytest.mark.asyncio
    async def test_confirmed_grant_allows_later_refresh(self):
        server = GrantServer()
        player, host = make_player(server)
        await player.mount()

        await player.on_media_rejected()
        player.on_media_loaded()

        assert await player.on_media_rejected()
        assert server.issued == 3

    @pytest.mark.asyncio
    async def test_rejection_before_mount_ignored(self):
        server = GrantServer()
        player, _ = make_player(server)

        assert not await player.on_media_rejected()
        assert server.issued == 0
