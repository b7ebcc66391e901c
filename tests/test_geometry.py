from __future__ import annotations

import math

import pytest

from collabcanvas.errors import ValidationError
from collabcanvas.geometry import (
    Bounds,
    BoundsCache,
    Circle,
    Handle,
    Point,
    Rectangle,
    Star,
    Text,
    bounds,
    clamp_rect_to_canvas,
    clamp_text_to_canvas,
    closest_corner,
    contains_point,
    parse_object,
    text_height,
    topmost_at,
)


def test_bounds_per_shape_variant() -> None:
    rect = Rectangle(id="r", x=10, y=20, width=30, height=40)
    circle = Circle(id="c", x=100, y=100, radius=25)
    star = Star(id="s", x=50, y=60, inner_radius=4, outer_radius=10)

    assert bounds(rect) == Bounds(left=10, right=40, top=20, bottom=60)
    assert bounds(circle) == Bounds(left=75, right=125, top=75, bottom=125)
    assert bounds(star) == Bounds(left=40, right=60, top=50, bottom=70)


def test_text_height_follows_wrapped_content() -> None:
    text = Text(id="t", x=0, y=0, width=200, font_size=24, text="x" * 30)
    # 200 / (24 * 0.6) -> 13 chars per line -> 3 lines
    assert text_height(text) == pytest.approx(3 * 24 * 1.2)
    assert bounds(text).bottom == pytest.approx(86.4)

    empty = Text(id="t2", x=0, y=0, width=200, text="")
    assert text_height(empty) == pytest.approx(24 * 1.2)


@pytest.mark.parametrize(
    "obj",
    [
        Rectangle(id="r", x=0, y=0, width=float("nan"), height=10),
        Rectangle(id="r", x=0, y=0, width=10, height=0),
        Rectangle(id="r", x=None, y=0, width=10, height=10),
        Circle(id="c", x=0, y=0, radius=-5),
        Star(id="s", x=0, y=0, inner_radius=None, outer_radius=10),
        Text(id="t", x=0, y=float("inf"), width=100),
    ],
)
def test_invalid_geometry_has_no_bounds_and_no_handle(obj) -> None:
    assert bounds(obj) is None
    assert closest_corner(Point(0, 0), obj) is None
    assert contains_point(obj, Point(0, 0)) is False


def test_closest_corner_unrotated() -> None:
    rect = Rectangle(id="r", x=0, y=0, width=100, height=100)

    assert closest_corner(Point(2, 3), rect) is Handle.NW
    assert closest_corner(Point(97, 4), rect) is Handle.NE
    assert closest_corner(Point(3, 99), rect) is Handle.SW
    assert closest_corner(Point(98, 97), rect) is Handle.SE


def test_closest_corner_rejects_points_far_from_center() -> None:
    rect = Rectangle(id="r", x=0, y=0, width=100, height=100)

    # 0.75 * 100 = 75 from the center (50, 50)
    assert closest_corner(Point(200, 200), rect) is None
    assert closest_corner(Point(-5, -5), rect) is None
    assert closest_corner(Point(math.nan, 10), rect) is None


def test_closest_corner_accounts_for_rotation() -> None:
    rect = Rectangle(id="r", x=0, y=0, width=100, height=50)
    rotated = rect.with_fields(rotation=90)

    # Rotating 90 degrees clockwise about (50, 25) carries the top-left corner to (75, -25).
    assert closest_corner(Point(74, -24), rotated) is Handle.NW
    assert closest_corner(Point(74, -24), rect) is Handle.NE


def test_contains_point_rotated_rectangle() -> None:
    rect = Rectangle(id="r", x=0, y=0, width=100, height=20, rotation=90)

    # Rotated about (50, 10) the bar becomes vertical: x in [40, 60], y in [-40, 60].
    assert contains_point(rect, Point(50, -30))
    assert not contains_point(rect, Point(90, 10))


def test_topmost_prefers_z_index_then_latest() -> None:
    low = Rectangle(id="low", x=0, y=0, width=100, height=100, z_index=1)
    high = Rectangle(id="high", x=50, y=50, width=100, height=100, z_index=5)
    late = Rectangle(id="late", x=50, y=50, width=100, height=100, z_index=5)

    assert topmost_at([low, high], Point(60, 60)).id == "high"
    assert topmost_at([low, high, late], Point(60, 60)).id == "late"
    assert topmost_at([low, high], Point(10, 10)).id == "low"
    assert topmost_at([low, high], Point(400, 400)) is None


def test_clamp_rect_shifts_inside_canvas(settings) -> None:
    rect = Rectangle(id="r", x=4990, y=-20, width=50, height=30)

    clamped = clamp_rect_to_canvas(rect, settings)

    assert (clamped.x, clamped.y, clamped.width, clamped.height) == (4950, 0, 50, 30)


def test_clamp_text_keeps_whole_line_inside_canvas(settings) -> None:
    text = Text(id="t", x=4900, y=4990, width=200, text="")

    clamped = clamp_text_to_canvas(text, settings)

    assert clamped.x == 4800
    assert clamped.y == pytest.approx(4971.2)
    assert clamped.width == 200


def test_parse_object_accepts_store_payloads() -> None:
    star = parse_object(
        {
            "id": "s1",
            "type": "star",
            "x": 10,
            "y": 10,
            "innerRadius": 4,
            "outerRadius": 10,
            "numPoints": 6,
            "lockedBy": "bob",
            "zIndex": 3,
        }
    )

    assert isinstance(star, Star)
    assert star.inner_radius == 4
    assert star.num_points == 6
    assert star.locked_by == "bob"
    assert star.z_index == 3


def test_parse_object_rejects_unknown_type() -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_object({"id": "h1", "type": "hexagon", "x": 0, "y": 0})

    assert excinfo.value.object_id == "h1"
    assert excinfo.value.issues


def test_bounds_cache_invalidates_on_modification_marker() -> None:
    cache = BoundsCache()
    rect = Rectangle(id="r", x=0, y=0, width=10, height=10, modified_at=1)

    first = cache.get(rect)
    second = cache.get(rect)
    assert first == second
    assert cache.stats() == {"entries": 1, "hits": 1, "misses": 1}

    resized = rect.with_fields(width=30, modified_at=2)
    assert cache.get(resized).right == 30
    assert cache.misses == 2

    cache.prune([])
    assert len(cache) == 0
