from __future__ import annotations

import math

import pytest

from collabcanvas.geometry import Circle, Rectangle, ShapeType, Star, Text
from collabcanvas.validation import (
    find_invalid_values,
    sanitize_object_update,
    validate_object_for_resize,
    validate_object_update,
)

NAN = float("nan")
INF = float("inf")


@pytest.mark.parametrize(
    "obj",
    [
        Rectangle(id="r", x=0, y=0, width=10, height=10),
        Circle(id="c", x=5, y=5, radius=1),
        Star(id="s", x=5, y=5, inner_radius=2, outer_radius=5),
        Text(id="t", x=0, y=0, width=50, font_size=12),
    ],
)
def test_valid_objects_pass(obj) -> None:
    result = validate_object_for_resize(obj)
    assert result.valid
    assert result.error is None


@pytest.mark.parametrize("bad", [None, NAN, INF, -INF, 0, -3])
@pytest.mark.parametrize(
    "shape, field",
    [
        (Rectangle(id="r", x=0, y=0, width=10, height=10), "width"),
        (Rectangle(id="r", x=0, y=0, width=10, height=10), "height"),
        (Circle(id="c", x=5, y=5, radius=3), "radius"),
        (Star(id="s", x=5, y=5, inner_radius=2, outer_radius=5), "inner_radius"),
        (Star(id="s", x=5, y=5, inner_radius=2, outer_radius=5), "outer_radius"),
        (Text(id="t", x=0, y=0, width=50), "width"),
    ],
)
def test_size_fields_reject_missing_non_finite_and_non_positive(shape, field, bad) -> None:
    result = validate_object_for_resize(shape.with_fields(**{field: bad}))

    assert not result.valid
    assert any(field in issue for issue in result.issues)


@pytest.mark.parametrize("bad", [None, NAN, INF])
@pytest.mark.parametrize("field", ["x", "y"])
def test_anchor_must_be_finite(field, bad) -> None:
    rect = Rectangle(id="r", x=0, y=0, width=10, height=10)

    assert not validate_object_for_resize(rect.with_fields(**{field: bad})).valid


def test_anchor_may_be_zero_or_negative() -> None:
    rect = Rectangle(id="r", x=-10, y=0, width=10, height=10)

    assert validate_object_for_resize(rect).valid


def test_star_radii_must_not_be_inverted() -> None:
    star = Star(id="s", x=0, y=0, inner_radius=8, outer_radius=5)

    result = validate_object_for_resize(star)
    assert not result.valid
    assert "inner_radius" in result.error


def test_non_finite_rotation_is_rejected() -> None:
    rect = Rectangle(id="r", x=0, y=0, width=10, height=10, rotation=INF)

    assert not validate_object_for_resize(rect).valid


def test_raw_payloads_are_checked() -> None:
    assert not validate_object_for_resize({"id": "x", "type": "hexagon"}).valid
    assert not validate_object_for_resize(["not", "a", "mapping"]).valid
    assert validate_object_for_resize(
        {"id": "s", "type": "star", "x": 1, "y": 1, "innerRadius": 1, "outerRadius": 2}
    ).valid


def test_validate_update_checks_only_present_fields() -> None:
    assert validate_object_update({"x": 10}).valid
    assert not validate_object_update({"width": -1}).valid
    assert not validate_object_update({"y": NAN}).valid
    assert not validate_object_update({"radius": 3}, ShapeType.RECTANGLE).valid
    assert not validate_object_update({"innerRadius": 6, "outerRadius": 5}).valid


def test_sanitize_keeps_only_valid_fields() -> None:
    update = {"x": NAN, "y": 5, "width": INF, "height": 10, "fill": "#fff"}

    clean = sanitize_object_update(update)

    assert clean == {"y": 5, "height": 10, "fill": "#fff"}
    assert all(not isinstance(v, float) or math.isfinite(v) for v in clean.values())


def test_sanitize_signals_when_nothing_survives() -> None:
    assert sanitize_object_update({"x": NAN, "width": 0}) is None
    assert sanitize_object_update({}) is None


def test_sanitize_filters_fields_for_shape_type() -> None:
    clean = sanitize_object_update({"radius": 5, "width": 10}, ShapeType.CIRCLE)
    assert clean == {"radius": 5}

    star = sanitize_object_update({"innerRadius": 4, "outerRadius": 10}, ShapeType.STAR)
    assert star == {"inner_radius": 4, "outer_radius": 10}


def test_find_invalid_values() -> None:
    assert find_invalid_values({"x": NAN, "y": 1, "width": INF, "fill": "red"}) == ["width", "x"]
    assert find_invalid_values(Rectangle(id="r", x=0, y=0, width=1, height=NAN)) == ["height"]
    assert find_invalid_values(None) == ["entire_object"]
    assert find_invalid_values({"x": 1, "y": 2}) == []
