"""
The embedding environment the viewer runs in.

A ViewerHost is whatever renders the lesson (a browser bridge, a desktop
shell, a test double). The protection logic only talks to this interface:
timers, event listeners, the media element, viewport geometry and a few
presentational hooks. Everything runs on the host's single event thread.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from lessonguard.utils.logger import get_logger

logger = get_logger("viewer.host")

EventHandler = Callable[["ViewerEvent"], None]


class Disposer:
    """
    One-shot cleanup callable.

    Calling it more than once is a no-op, so teardown paths can be re-entered
    safely.
    """

    __slots__ = ("_fn", "_disposed", "name")

    def __init__(self, fn: Optional[Callable[[], None]] = None, name: str = ""):
        self._fn = fn
        self._disposed = False
        self.name = name

    @property
    def disposed(self) -> bool:
        return self._disposed

    def __call__(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        fn, self._fn = self._fn, None
        if fn is not None:
            fn()

    def __repr__(self) -> str:
        return f"<Disposer {self.name or 'anonymous'} disposed={self._disposed}>"


class DisposerStack:
    """Collects disposers and runs each exactly once, newest first."""

    def __init__(self):
        self._disposers: List[Disposer] = []

    def __len__(self) -> int:
        return len(self._disposers)

    def push(self, disposer: Disposer) -> Disposer:
        self._disposers.append(disposer)
        return disposer

    def dispose(self) -> None:
        """
        Run every disposer in LIFO order.

        A failing disposer does not stop the others; the first error is
        re-raised once all have run.
        """
        first_error: Optional[BaseException] = None
        while self._disposers:
            disposer = self._disposers.pop()
            try:
                disposer()
            except Exception as e:
                logger.error("Disposer failed", disposer=disposer.name, error=str(e), exc_info=True)
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error


@dataclass
class ViewerEvent:
    """A host UI event (keydown, contextmenu, blur, ...)."""
    type: str
    key: str = ""
    meta: bool = False
    ctrl: bool = False
    shift: bool = False
    alt: bool = False
    default_prevented: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True


@dataclass(frozen=True)
class Viewport:
    """Outer (window chrome included) and inner (content) dimensions in px."""
    outer_width: int
    outer_height: int
    inner_width: int
    inner_height: int

    @property
    def width_delta(self) -> int:
        return self.outer_width - self.inner_width

    @property
    def height_delta(self) -> int:
        return self.outer_height - self.inner_height


class MediaElement(ABC):
    """The host's video element."""

    @property
    @abstractmethod
    def paused(self) -> bool:
        pass

    @abstractmethod
    def play(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def load(self, url: str) -> None:
        """Point the element at a (tokenised) media URL."""
        pass


class ViewerHost(ABC):
    """
    Interface to the embedding environment.

    Event targets are "document", "window" and "media".
    """

    media: Optional[MediaElement] = None

    # Object exposing the platform screen-capture request as
    # get_display_media; CaptureGuard wraps it.
    capture_api: Any = None

    @abstractmethod
    def now(self) -> float:
        """Monotonic time in milliseconds."""
        pass

    @abstractmethod
    def set_interval(self, callback: Callable[[], None], interval_ms: int) -> Disposer:
        pass

    @abstractmethod
    def add_event_listener(self, target: str, event_type: str, handler: EventHandler) -> Disposer:
        pass

    @abstractmethod
    def viewport(self) -> Viewport:
        pass

    @abstractmethod
    def is_document_hidden(self) -> bool:
        pass

    @abstractmethod
    def show_warning(self, message: str) -> None:
        pass

    @abstractmethod
    def hide_warning(self) -> None:
        pass

    @abstractmethod
    def set_obscured(self, obscured: bool) -> None:
        """Blur or unblur the protected frame without pausing."""
        pass

    @abstractmethod
    def render_watermark(self, label: str, x: float, y: float) -> None:
        pass

    def clear_watermark(self) -> None:
        pass

    def client_context(self) -> Dict[str, Any]:
        """Best-effort details attached to activity reports."""
        return {}
