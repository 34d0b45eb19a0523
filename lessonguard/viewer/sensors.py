"""
Tamper-detection sensors.

Each sensor is one independent, best-effort heuristic. None of them is a
security boundary: a motivated user can disable any of them, and server-side
entitlement, tokens and watermarking hold regardless. Sensors report into a
DetectionSink and return a Disposer from arm().
"""
from abc import ABC, abstractmethod
from typing import Any, Dict

from lessonguard.viewer.host import Disposer, DisposerStack, ViewerEvent, ViewerHost
from lessonguard.utils.logger import get_logger

logger = get_logger("viewer.sensors")

DEVTOOLS_POLL_MS = 1000
DEVTOOLS_THRESHOLD_PX = 160
CAPTURE_REPATCH_MS = 5000


class DetectionSink(ABC):
    """Receives sensor signals (implemented by TamperDetector)."""

    @abstractmethod
    def on_violation(self, activity_type: str, message: str, details: Dict[str, Any]) -> None:
        """A sensor fired: pause, warn and report."""
        pass

    @abstractmethod
    def on_cleared(self, activity_type: str) -> None:
        """The condition behind an earlier violation went away."""
        pass

    @abstractmethod
    def on_advisory(self, activity_type: str, details: Dict[str, Any]) -> None:
        """Report-only signal; no warning is shown."""
        pass


class Sensor(ABC):
    name = "sensor"

    @abstractmethod
    def arm(self, host: ViewerHost, sink: DetectionSink) -> Disposer:
        pass


def is_screenshot_shortcut(event: ViewerEvent) -> bool:
    """
    PrintScreen, macOS Cmd+Shift+3/4/5 and Windows Win+Shift+S (reported as
    meta or ctrl depending on the platform bridge).
    """
    key = event.key.lower()
    if key == "printscreen":
        return True
    if event.meta and event.shift and key in ("3", "4", "5"):
        return True
    return key == "s" and event.shift and (event.meta or event.ctrl)


def describe_shortcut(event: ViewerEvent) -> str:
    parts = [name for name, held in (("Meta", event.meta), ("Ctrl", event.ctrl),
                                     ("Alt", event.alt), ("Shift", event.shift)) if held]
    parts.append(event.key)
    return "+".join(parts)


class KeyboardShortcutSensor(Sensor):
    name = "keyboard_shortcut"

    def arm(self, host: ViewerHost, sink: DetectionSink) -> Disposer:
        def on_keydown(event: ViewerEvent) -> None:
            if not is_screenshot_shortcut(event):
                return
            event.prevent_default()
            sink.on_violation(
                "screenshot_attempt",
                "Screenshots are not allowed. Video paused.",
                {"shortcut": describe_shortcut(event)},
            )

        return host.add_event_listener("document", "keydown", on_keydown)


class CaptureBlockedError(Exception):
    """Raised to the page when it asks for a screen capture stream."""
    pass


class CaptureGuard(Sensor):
    """
    Wraps the host's screen-capture request so any call is rejected and
    reported.

    The wrapper is re-installed periodically in case page code restored the
    original. On disarm the original is put back only if our wrapper is
    still the installed one.
    """

    name = "capture_guard"
    ATTRIBUTE = "get_display_media"

    def __init__(self, repatch_ms: int = CAPTURE_REPATCH_MS):
        self.repatch_ms = repatch_ms

    def arm(self, host: ViewerHost, sink: DetectionSink) -> Disposer:
        api = host.capture_api
        if api is None or not hasattr(api, self.ATTRIBUTE):
            logger.debug("No capture API exposed by host; capture guard inactive")
            return Disposer(name=self.name)

        original = getattr(api, self.ATTRIBUTE)

        async def guarded(*args, **kwargs):
            sink.on_violation(
                "screen_recording_detected",
                "Screen recording detected. Video paused.",
                {"api": "getDisplayMedia"},
            )
            raise CaptureBlockedError("Screen recording is not allowed")

        def install() -> None:
            if getattr(api, self.ATTRIBUTE) is not guarded:
                setattr(api, self.ATTRIBUTE, guarded)

        def restore() -> None:
            if getattr(api, self.ATTRIBUTE) is guarded:
                setattr(api, self.ATTRIBUTE, original)

        install()
        stack = DisposerStack()
        stack.push(Disposer(restore, name="capture_guard.restore"))
        stack.push(host.set_interval(install, self.repatch_ms))
        return Disposer(stack.dispose, name=self.name)


class DevtoolsViewportSensor(Sensor):
    """
    Outer vs inner window size heuristic for docked developer tools.

    Fires when the gap opens and again on every poll that finds the media
    playing while the gap is still open, so acknowledging the warning does
    not unlock playback. One clear when it closes. Both false positives
    (zoom, side panels) and false negatives (undocked tools) are expected.
    """

    name = "devtools_viewport"

    def __init__(self, poll_ms: int = DEVTOOLS_POLL_MS, threshold_px: int = DEVTOOLS_THRESHOLD_PX):
        self.poll_ms = poll_ms
        self.threshold_px = threshold_px

    def arm(self, host: ViewerHost, sink: DetectionSink) -> Disposer:
        state = {"open": False}

        def poll() -> None:
            viewport = host.viewport()
            is_open = (
                viewport.width_delta > self.threshold_px
                or viewport.height_delta > self.threshold_px
            )
            playing = host.media is not None and not host.media.paused
            if is_open and (not state["open"] or playing):
                state["open"] = True
                sink.on_violation(
                    "devtools_detected",
                    "Developer tools detected. Video paused.",
                    {"width_delta": viewport.width_delta, "height_delta": viewport.height_delta},
                )
            elif not is_open and state["open"]:
                state["open"] = False
                sink.on_cleared("devtools_detected")

        return host.set_interval(poll, self.poll_ms)


class VisibilitySensor(Sensor):
    """
    Hidden document pauses playback; window blur only obscures the frame.

    Switching tabs and a screenshot overlay grabbing focus look different:
    the first hides the document, the second only blurs the window.
    """

    name = "visibility"

    def arm(self, host: ViewerHost, sink: DetectionSink) -> Disposer:
        def on_visibility_change(event: ViewerEvent) -> None:
            if host.is_document_hidden() and host.media is not None:
                host.media.pause()
                sink.on_advisory("focus_lost", {})

        def on_blur(event: ViewerEvent) -> None:
            host.set_obscured(True)

        def on_focus(event: ViewerEvent) -> None:
            host.set_obscured(False)

        stack = DisposerStack()
        stack.push(host.add_event_listener("document", "visibilitychange", on_visibility_change))
        stack.push(host.add_event_listener("window", "blur", on_blur))
        stack.push(host.add_event_listener("window", "focus", on_focus))
        stack.push(Disposer(lambda: host.set_obscured(False), name="visibility.unobscure"))
        return Disposer(stack.dispose, name=self.name)


class ContextMenuGuard(Sensor):
    """Suppresses the context menu and drag-out on the media element."""

    name = "context_menu"

    def arm(self, host: ViewerHost, sink: DetectionSink) -> Disposer:
        def suppress(event: ViewerEvent) -> None:
            event.prevent_default()

        stack = DisposerStack()
        stack.push(host.add_event_listener("media", "contextmenu", suppress))
        stack.push(host.add_event_listener("media", "dragstart", suppress))
        return Disposer(stack.dispose, name=self.name)


def default_sensors() -> list:
    return [
        KeyboardShortcutSensor(),
        CaptureGuard(),
        DevtoolsViewportSensor(),
        VisibilitySensor(),
        ContextMenuGuard(),
    ]
