#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wonderland - Drawing Module (Framework-Independent)
===================================================
Creative Studio canvas: pointer state machine, SVG preview, PNG snapshot.

The surface is Idle until a pointer goes down, then Drawing with the color
(or eraser) and stroke width captured at that moment. Every move while
Drawing appends one straight segment from the previous point. Up, leave
and cancel return to Idle. A saved drawing is the rasterised bitmap only.
"""

import io
import base64
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageColor, ImageDraw

from engine import log


SURFACE_WIDTH = 600
SURFACE_HEIGHT = 400
SURFACE_BACKGROUND = "#ffffff"   # Eraser strokes preview in this color
DEFAULT_COLOR = "#000000"

# --- Tuning constants ---
MIN_STROKE_WIDTH = 1
MAX_STROKE_WIDTH = 20
DEFAULT_STROKE_WIDTH = 5

# Mouse, touch and pointer event names → down / move / up
_EVENT_KINDS = {
    "mousedown": "down", "touchstart": "down", "pointerdown": "down",
    "mousemove": "move", "touchmove": "move", "pointermove": "move",
    "mouseup": "up", "mouseleave": "up", "mouseout": "up",
    "touchend": "up", "touchcancel": "up",
    "pointerup": "up", "pointerleave": "up", "pointercancel": "up",
}


@dataclass
class Segment:
    x0: float
    y0: float
    x1: float
    y1: float
    color: str
    width: int
    erase: bool = False


def segment_svg(s: Segment) -> str:
    stroke = SURFACE_BACKGROUND if s.erase else s.color
    return (f'<line x1="{s.x0:.1f}" y1="{s.y0:.1f}" x2="{s.x1:.1f}" y2="{s.y1:.1f}" '
            f'stroke="{stroke}" stroke-width="{s.width}" stroke-linecap="round" />')


class DrawingSurface:
    """Fixed-size drawing surface driven by normalized pointer events."""

    def __init__(self, width: int = SURFACE_WIDTH, height: int = SURFACE_HEIGHT):
        self.width = width
        self.height = height
        # Tool selection (applies from the next pointer-down)
        self.color = DEFAULT_COLOR
        self.stroke_width = DEFAULT_STROKE_WIDTH
        self.eraser = False
        self.segments: list[Segment] = []
        # Active stroke
        self._drawing = False
        self._stroke_color = DEFAULT_COLOR
        self._stroke_width = DEFAULT_STROKE_WIDTH
        self._stroke_erase = False
        self._last: Optional[tuple[float, float]] = None

    # ── Tool selection ──────────────────────────────────────

    def set_color(self, color: str) -> None:
        """Pick a pen color. Picking a color leaves eraser mode."""
        ImageColor.getrgb(color)  # ValueError on garbage
        self.color = color
        self.eraser = False

    def select_eraser(self) -> None:
        self.eraser = True

    def toggle_eraser(self) -> bool:
        """Switch between eraser and the current pen color. Returns the new eraser state."""
        self.eraser = not self.eraser
        return self.eraser

    def set_stroke_width(self, width) -> None:
        self.stroke_width = max(MIN_STROKE_WIDTH, min(MAX_STROKE_WIDTH, int(width)))

    # ── State machine ───────────────────────────────────────

    @property
    def is_drawing(self) -> bool:
        return self._drawing

    @property
    def state(self) -> str:
        return "drawing" if self._drawing else "idle"

    @property
    def is_blank(self) -> bool:
        return not self.segments

    def _clamp(self, x: float, y: float) -> tuple[float, float]:
        return (max(0.0, min(float(self.width), float(x))),
                max(0.0, min(float(self.height), float(y))))

    def pointer_down(self, x: float, y: float) -> Segment:
        self._drawing = True
        self._stroke_erase = self.eraser
        self._stroke_color = self.color
        self._stroke_width = self.stroke_width
        self._last = self._clamp(x, y)
        # Zero-length segment: a round-capped dot where the pointer landed
        return self._append(self._last)

    def pointer_move(self, x: float, y: float) -> Optional[Segment]:
        if not self._drawing:
            return None
        return self._append(self._clamp(x, y))

    def pointer_up(self) -> None:
        self._drawing = False
        self._last = None

    def handle(self, event_type: str, x: Optional[float] = None,
               y: Optional[float] = None) -> Optional[Segment]:
        """Dispatch a raw browser event name. Unknown names are ignored."""
        kind = _EVENT_KINDS.get(event_type)
        if kind == "down" and x is not None and y is not None:
            return self.pointer_down(x, y)
        if kind == "move" and x is not None and y is not None:
            return self.pointer_move(x, y)
        if kind == "up":
            self.pointer_up()
        return None

    def _append(self, point: tuple[float, float]) -> Segment:
        x0, y0 = self._last if self._last else point
        seg = Segment(x0, y0, point[0], point[1],
                      color=self._stroke_color, width=self._stroke_width,
                      erase=self._stroke_erase)
        self.segments.append(seg)
        self._last = point
        return seg

    def clear(self) -> None:
        self.segments = []
        self.pointer_up()

    # ── Output ──────────────────────────────────────────────

    def to_svg(self) -> str:
        """SVG lines for the interactive_image overlay."""
        return "".join(segment_svg(s) for s in self.segments)

    def render(self) -> Image.Image:
        """Rasterise onto a transparent RGBA bitmap. Eraser segments write transparent pixels."""
        img = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(img)
        for s in self.segments:
            ink = (0, 0, 0, 0) if s.erase else ImageColor.getcolor(s.color, "RGBA")
            draw.line([(s.x0, s.y0), (s.x1, s.y1)], fill=ink, width=s.width)
            # Round caps
            r = s.width / 2
            for cx, cy in ((s.x0, s.y0), (s.x1, s.y1)):
                draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=ink)
        return img

    def to_png_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.render().save(buf, format="PNG")
        return buf.getvalue()

    def to_data_url(self) -> str:
        png = self.to_png_bytes()
        log(f"[Drawing] Snapshot: {len(self.segments)} segments → {len(png)} bytes PNG", level="debug")
        return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def blank_background_data_url(width: int = SURFACE_WIDTH, height: int = SURFACE_HEIGHT) -> str:
    """Opaque background image used as the interactive_image source."""
    buf = io.BytesIO()
    Image.new("RGB", (width, height), SURFACE_BACKGROUND).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
