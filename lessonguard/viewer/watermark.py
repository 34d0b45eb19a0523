"""
Identity watermark for protected lessons.

The mark is a visual overlay, not embedded in the media bytes: it survives
copy/paste and right-click save, but not cropping or an external camera.
It deters casual redistribution and lets a leak be attributed.
"""
import base64
import random
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID
from xml.sax.saxutils import escape

from lessonguard.viewer.host import Disposer, DisposerStack, ViewerHost

ROTATION_INTERVAL_MS = 30000
LABEL_WIDTH_PX = 300
EDGE_MARGIN_PX = 20
BOTTOM_MARGIN_PX = 80
TOP_CENTER_Y = 50
EMAIL_VISIBLE_CHARS = 4


def build_identity_label(email: str, user_id: UUID, today: date) -> str:
    """
    Label shown over protected content.

    Example:
        >>> build_identity_label("jane.doe@example.com", uid, date(2026, 3, 1))
        'jane…@example.com | 1f2e3d4c | 2026-03-01'
    """
    local, _, domain = email.partition("@")
    if len(local) > EMAIL_VISIBLE_CHARS:
        local = local[:EMAIL_VISIBLE_CHARS] + "…"
    masked = f"{local}@{domain}" if domain else local
    return f"{masked} | {user_id.hex[:8]} | {today.isoformat()}"


def candidate_positions(width: float, height: float) -> List[Tuple[float, float]]:
    """Four corners and centre-top, for a label LABEL_WIDTH_PX wide."""
    right = width - LABEL_WIDTH_PX - EDGE_MARGIN_PX
    bottom = height - BOTTOM_MARGIN_PX
    return [
        (EDGE_MARGIN_PX, EDGE_MARGIN_PX),
        (right, EDGE_MARGIN_PX),
        (EDGE_MARGIN_PX, bottom),
        (right, bottom),
        (width / 2 - LABEL_WIDTH_PX / 2, TOP_CENTER_Y),
    ]


@dataclass
class WatermarkState:
    position: Tuple[float, float]
    last_rotated_at: float
    identity_label: str


class WatermarkRenderer:
    """
    Rotates the identity label between candidate regions on a timer.

    Args:
        host: Embedding environment
        label: Identity label (see build_identity_label)
        interval_ms: Rotation period
        rng: Random source (seed it in tests)
    """

    def __init__(
        self,
        host: ViewerHost,
        label: str,
        interval_ms: int = ROTATION_INTERVAL_MS,
        rng: Optional[random.Random] = None,
    ):
        self.host = host
        self.label = label
        self.interval_ms = interval_ms
        self.rng = rng or random.Random()
        self.state: Optional[WatermarkState] = None

    def start(self) -> Disposer:
        """Render at the first position and start rotating."""
        self._render((EDGE_MARGIN_PX, EDGE_MARGIN_PX))

        stack = DisposerStack()
        stack.push(Disposer(self._clear, name="watermark.clear"))
        stack.push(self.host.set_interval(self.rotate, self.interval_ms))
        return Disposer(stack.dispose, name="watermark")

    def rotate(self) -> None:
        viewport = self.host.viewport()
        positions = candidate_positions(viewport.inner_width, viewport.inner_height)
        self._render(self.rng.choice(positions))

    def _render(self, position: Tuple[float, float]) -> None:
        self.state = WatermarkState(position, self.host.now(), self.label)
        self.host.render_watermark(self.label, *position)

    def _clear(self) -> None:
        self.state = None
        self.host.clear_watermark()


def render_tiled_svg(
    label: str,
    opacity: float = 0.08,
    tile_width: int = 320,
    tile_height: int = 160,
    angle: int = -30,
) -> str:
    """
    Tiled low-opacity SVG carrying the label, for static text lessons.

    Used as a CSS background, so no timer is needed.
    """
    if not 0 < opacity <= 1:
        raise ValueError("Opacity must be in (0, 1]")

    text = escape(label, {'"': "&quot;"})
    cx, cy = tile_width // 2, tile_height // 2
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="100%" height="100%">'
        f'<defs><pattern id="wm" width="{tile_width}" height="{tile_height}" '
        f'patternUnits="userSpaceOnUse">'
        f'<text x="{cx}" y="{cy}" text-anchor="middle" font-family="sans-serif" '
        f'font-size="14" fill="#000" fill-opacity="{opacity}" '
        f'transform="rotate({angle} {cx} {cy})">{text}</text>'
        f'</pattern></defs>'
        f'<rect width="100%" height="100%" fill="url(#wm)"/></svg>'
    )


def tiled_svg_data_uri(label: str, opacity: float = 0.08) -> str:
    svg = render_tiled_svg(label, opacity=opacity)
    return "data:image/svg+xml;base64," + base64.b64encode(svg.encode("utf-8")).decode("ascii")
