"""
Client tamper-detection state machine.

    IDLE -> ARMED -> VIOLATION_DETECTED -> PAUSED -> RESUMED -> ARMED ...
                                                  any state -> TORN_DOWN

A violation takes effect locally first: the media is paused and the
warning shown before the report is even scheduled, and the report never
blocks recovery. Only an explicit acknowledge() or the triggering condition
clearing leaves PAUSED; play requests are refused while paused.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from lessonguard.schemas.security import (
    DevtoolsDetected,
    FocusLost,
    OtherActivity,
    ScreenRecordingDetected,
    ScreenshotAttempt,
)
from lessonguard.viewer.host import DisposerStack, ViewerHost
from lessonguard.viewer.reporter import SuspiciousActivityReporter
from lessonguard.viewer.sensors import DetectionSink, Sensor, default_sensors
from lessonguard.utils.logger import get_logger

logger = get_logger("viewer.detector")

EVENT_TYPES = {
    "screenshot_attempt": ScreenshotAttempt,
    "screen_recording_detected": ScreenRecordingDetected,
    "devtools_detected": DevtoolsDetected,
    "focus_lost": FocusLost,
    "other": OtherActivity,
}


class DetectorState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    VIOLATION_DETECTED = "violation_detected"
    PAUSED = "paused"
    RESUMED = "resumed"
    TORN_DOWN = "torn_down"


@dataclass(frozen=True)
class Violation:
    activity_type: str
    message: str
    detected_at: float


class TamperDetector(DetectionSink):
    """
    Arms sensors against a host and reacts to what they report.

    Args:
        host: Embedding environment
        reporter: Fire-and-forget activity reporter
        content_id: Lesson being protected
        sensors: Sensors to arm (defaults to the full set)
    """

    def __init__(
        self,
        host: ViewerHost,
        reporter: SuspiciousActivityReporter,
        content_id: UUID,
        sensors: Optional[Sequence[Sensor]] = None,
    ):
        self.host = host
        self.reporter = reporter
        self.content_id = content_id
        self.sensors = list(sensors) if sensors is not None else default_sensors()
        self.state = DetectorState.IDLE
        self.history: List[DetectorState] = [DetectorState.IDLE]
        self.violation: Optional[Violation] = None
        self._registrations = DisposerStack()

    def _transition(self, state: DetectorState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def is_active(self) -> bool:
        return self.state not in (DetectorState.IDLE, DetectorState.TORN_DOWN)

    def arm(self) -> None:
        """
        Register every sensor.

        Raises:
            RuntimeError: If the detector is not IDLE
        """
        if self.state != DetectorState.IDLE:
            raise RuntimeError(f"Cannot arm detector in state {self.state.value}")

        try:
            for sensor in self.sensors:
                self._registrations.push(sensor.arm(self.host, self))
        except Exception:
            self._registrations.dispose()
            raise

        self._transition(DetectorState.ARMED)
        logger.debug("Tamper detector armed", content_id=str(self.content_id), sensors=len(self.sensors))

    def on_violation(self, activity_type: str, message: str, details: Dict[str, Any]) -> None:
        if not self.is_active:
            return

        self._transition(DetectorState.VIOLATION_DETECTED)
        if self.host.media is not None:
            self.host.media.pause()
        self.host.show_warning(message)
        self.violation = Violation(activity_type, message, self.host.now())
        self._transition(DetectorState.PAUSED)

        logger.info("Tamper signal", content_id=str(self.content_id), activity_type=activity_type)
        self._report(activity_type, details)

    def on_cleared(self, activity_type: str) -> None:
        if self.state == DetectorState.PAUSED and self.violation and self.violation.activity_type == activity_type:
            self._resume()

    def on_advisory(self, activity_type: str, details: Dict[str, Any]) -> None:
        if self.is_active:
            self._report(activity_type, details)

    def acknowledge(self) -> None:
        """User dismissed the warning."""
        if self.state == DetectorState.PAUSED:
            self._resume()

    def _resume(self) -> None:
        self.violation = None
        self.host.hide_warning()
        self._transition(DetectorState.RESUMED)
        self._transition(DetectorState.ARMED)

    def request_play(self) -> bool:
        """
        Start playback unless a violation holds it paused.

        Returns:
            True if play() was forwarded to the media element
        """
        if self.state != DetectorState.ARMED or self.host.media is None:
            return False
        self.host.media.play()
        return True

    def teardown(self) -> None:
        """Deregister every listener and interval. Idempotent."""
        if self.state == DetectorState.TORN_DOWN:
            return
        was_paused = self.state == DetectorState.PAUSED
        self._transition(DetectorState.TORN_DOWN)
        try:
            self._registrations.dispose()
        finally:
            if was_paused:
                self.host.hide_warning()
            logger.debug("Tamper detector torn down", content_id=str(self.content_id))

    def _report(self, activity_type: str, details: Dict[str, Any]) -> None:
        event_cls = EVENT_TYPES.get(activity_type, OtherActivity)
        event = event_cls(
            content_id=self.content_id,
            timestamp=datetime.now(timezone.utc),
            client_context=self.host.client_context(),
            **details,
        )
        self.reporter.report(event)
