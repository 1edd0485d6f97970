import base64
import io

import pytest
from PIL import Image

from drawing import (
    DEFAULT_STROKE_WIDTH, MAX_STROKE_WIDTH, MIN_STROKE_WIDTH, SURFACE_HEIGHT, SURFACE_WIDTH,
    DrawingSurface, blank_background_data_url,
)


@pytest.fixture
def surface():
    return DrawingSurface()


def test_starts_idle_with_defaults(surface):
    assert surface.state == "idle"
    assert surface.stroke_width == DEFAULT_STROKE_WIDTH
    assert surface.color == "#000000"
    assert surface.is_blank


def test_move_without_down_draws_nothing(surface):
    assert surface.pointer_move(10, 10) is None
    assert surface.is_blank


def test_stroke_appends_connected_segments(surface):
    surface.pointer_down(0, 0)
    surface.pointer_move(10, 0)
    surface.pointer_move(10, 10)
    surface.pointer_up()
    assert surface.state == "idle"
    # dot + two segments, each starting where the previous ended
    segs = surface.segments
    assert len(segs) == 3
    assert (segs[1].x0, segs[1].y0, segs[1].x1, segs[1].y1) == (0, 0, 10, 0)
    assert (segs[2].x0, segs[2].y0) == (segs[1].x1, segs[1].y1)


def test_tool_captured_at_pointer_down(surface):
    surface.set_color("#ff0000")
    surface.set_stroke_width(8)
    surface.pointer_down(0, 0)
    surface.set_color("#00ff00")
    surface.set_stroke_width(2)
    seg = surface.pointer_move(5, 5)
    assert (seg.color, seg.width) == ("#ff0000", 8)


def test_eraser_mode(surface):
    surface.select_eraser()
    surface.pointer_down(1, 1)
    assert surface.segments[-1].erase
    surface.pointer_up()
    surface.set_color("#123456")
    assert not surface.eraser


def test_eraser_toggle_returns_to_same_pen(surface):
    surface.set_color("#ff0000")
    assert surface.toggle_eraser() is True
    assert surface.toggle_eraser() is False
    seg = surface.pointer_down(3, 3)
    assert not seg.erase
    assert seg.color == "#ff0000"


def test_invalid_color_rejected(surface):
    with pytest.raises(ValueError):
        surface.set_color("not-a-color")


@pytest.mark.parametrize("width,expected", [(0, MIN_STROKE_WIDTH), (50, MAX_STROKE_WIDTH), ("7", 7)])
def test_stroke_width_clamped(surface, width, expected):
    surface.set_stroke_width(width)
    assert surface.stroke_width == expected


def test_points_clamped_into_surface(surface):
    surface.pointer_down(-20, 900)
    seg = surface.segments[0]
    assert (seg.x1, seg.y1) == (0, SURFACE_HEIGHT)


@pytest.mark.parametrize("down,move,up", [
    ("mousedown", "mousemove", "mouseup"),
    ("touchstart", "touchmove", "touchend"),
    ("pointerdown", "pointermove", "pointerleave"),
    ("touchstart", "touchmove", "touchcancel"),
])
def test_event_families_normalized(surface, down, move, up):
    surface.handle(down, 1, 1)
    assert surface.is_drawing
    surface.handle(move, 2, 2)
    surface.handle(up)
    assert not surface.is_drawing
    assert len(surface.segments) == 2


def test_unknown_event_ignored(surface):
    assert surface.handle("wheel", 1, 1) is None
    assert surface.is_blank


def test_clear_discards_and_returns_to_idle(surface):
    surface.pointer_down(1, 1)
    surface.clear()
    assert surface.is_blank
    assert surface.state == "idle"


def test_render_paints_stroke_pixels(surface):
    surface.set_color("#ff0000")
    surface.set_stroke_width(10)
    surface.pointer_down(100, 100)
    surface.pointer_move(200, 100)
    img = surface.render()
    assert img.size == (SURFACE_WIDTH, SURFACE_HEIGHT)
    assert img.getpixel((150, 100)) == (255, 0, 0, 255)
    # Untouched area stays transparent
    assert img.getpixel((10, 300))[3] == 0


def test_eraser_writes_transparent_pixels(surface):
    surface.set_stroke_width(10)
    surface.pointer_down(100, 100)
    surface.pointer_move(200, 100)
    surface.pointer_up()
    surface.select_eraser()
    surface.pointer_down(150, 100)
    surface.pointer_up()
    img = surface.render()
    assert img.getpixel((150, 100))[3] == 0
    assert img.getpixel((110, 100))[3] == 255


def test_data_url_is_decodable_png(surface):
    surface.pointer_down(5, 5)
    url = surface.to_data_url()
    prefix = "data:image/png;base64,"
    assert url.startswith(prefix)
    img = Image.open(io.BytesIO(base64.b64decode(url[len(prefix):])))
    assert img.format == "PNG"
    assert img.mode == "RGBA"


def test_svg_preview_uses_background_for_eraser(surface):
    surface.pointer_down(1, 1)
    surface.pointer_up()
    surface.select_eraser()
    surface.pointer_down(2, 2)
    svg = surface.to_svg()
    assert svg.count("<line") == 2
    assert 'stroke="#000000"' in svg
    assert 'stroke="#ffffff"' in svg


def test_blank_background_has_surface_size():
    url = blank_background_data_url()
    img = Image.open(io.BytesIO(base64.b64decode(url.split(",", 1)[1])))
    assert img.size == (SURFACE_WIDTH, SURFACE_HEIGHT)
