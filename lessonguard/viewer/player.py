"""
Secure video player orchestration.

mount():   token first, then media URL, then sensors and watermark
play():    routed through the detector so a pause always wins
unmount(): every registration released exactly once
"""
import random
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence
from uuid import UUID

from lessonguard.viewer.host import DisposerStack, ViewerHost
from lessonguard.viewer.playback_client import (
    PlaybackClient,
    PlaybackError,
    PlaybackFailure,
    PlaybackGrant,
    TokenInvalidError,
    describe_failure,
)
from lessonguard.viewer.reporter import SuspiciousActivityReporter
from lessonguard.viewer.sensors import Sensor
from lessonguard.viewer.state_machine import TamperDetector
from lessonguard.viewer.watermark import ROTATION_INTERVAL_MS, WatermarkRenderer, build_identity_label
from lessonguard.utils.logger import get_logger

logger = get_logger("viewer.player")


@dataclass(frozen=True)
class ViewerIdentity:
    user_id: UUID
    email: str


class SecureVideoPlayer:
    """
    Args:
        host: Embedding environment (must expose a media element)
        client: Playback client
        reporter: Activity reporter handed to the detector
        identity: Viewer identity for the watermark
        content_id: Video lesson to play
        sensors: Override the detector's sensor set
        watermark_interval_ms: Watermark rotation period
        rng: Random source for watermark placement
        today: Date shown in the watermark (defaults to today)
    """

    def __init__(
        self,
        host: ViewerHost,
        client: PlaybackClient,
        reporter: SuspiciousActivityReporter,
        identity: ViewerIdentity,
        content_id: UUID,
        sensors: Optional[Sequence[Sensor]] = None,
        watermark_interval_ms: int = ROTATION_INTERVAL_MS,
        rng: Optional[random.Random] = None,
        today: Optional[date] = None,
    ):
        self.host = host
        self.client = client
        self.content_id = content_id
        self.detector = TamperDetector(host, reporter, content_id, sensors=sensors)
        self.watermark = WatermarkRenderer(
            host,
            build_identity_label(identity.email, identity.user_id, today or date.today()),
            interval_ms=watermark_interval_ms,
            rng=rng,
        )
        self.grant: Optional[PlaybackGrant] = None
        self.failure: Optional[PlaybackFailure] = None
        self._registrations = DisposerStack()
        self._mounted = False
        self._unmounted = False
        self._awaiting_confirmation = False

    @property
    def mounted(self) -> bool:
        return self._mounted

    async def mount(self) -> bool:
        """
        Obtain a playback grant, load it and arm protection.

        Returns:
            False if the grant was refused or the player was unmounted while
            waiting; self.failure then describes what to show
        """
        if self._mounted or self._unmounted:
            raise RuntimeError("Player can only be mounted once")

        try:
            grant = await self.client.request_playback(self.content_id)
        except PlaybackError as e:
            self._fail(e)
            logger.info("Playback refused", content_id=str(self.content_id), kind=self.failure.kind)
            return False

        if self._unmounted:
            return False

        self.grant = grant
        self.host.media.load(grant.playback_url)
        self.detector.arm()
        self._registrations.push(self.watermark.start())
        self._mounted = True
        return True

    def play(self) -> bool:
        return self.detector.request_play()

    def acknowledge_warning(self) -> None:
        self.detector.acknowledge()

    async def on_media_rejected(self) -> bool:
        """
        The media element's request came back token_invalid (e.g. expired).

        Requests a fresh grant once and reloads. If the fresh grant is
        rejected before on_media_loaded() confirms it, the failure surfaces.

        Returns:
            True if a fresh grant was loaded
        """
        if not self._mounted:
            return False

        if self._awaiting_confirmation:
            self._fail(TokenInvalidError("Playback token rejected twice"))
            return False

        logger.info("Media request rejected, requesting a fresh token", content_id=str(self.content_id))
        try:
            grant = await self.client.request_playback(self.content_id)
        except PlaybackError as e:
            self._fail(e)
            return False

        if self._unmounted:
            return False

        self.grant = grant
        self._awaiting_confirmation = True
        self.host.media.load(grant.playback_url)
        return True

    def on_media_loaded(self) -> None:
        """The media element accepted the current grant."""
        self._awaiting_confirmation = False

    def _fail(self, exc: Exception) -> None:
        self.failure = describe_failure(exc)
        self.host.show_warning(self.failure.message)

    def unmount(self) -> None:
        """Tear down detector and watermark. Idempotent."""
        if self._unmounted:
            return
        self._unmounted = True
        self._mounted = False
        try:
            self.detector.teardown()
        finally:
            self._registrations.dispose()
