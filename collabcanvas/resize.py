from __future__ import annotations

"""
Shape-specific resize geometry.

A resize runs as ``idle -> active -> idle``. The active session keeps the
pre-gesture snapshot (``origin``), the snapshot deltas are measured from
(``baseline``), the dragged handle and the pointer position the deltas are
measured against. Rectangles additionally detect crossover: when the dragged
corner passes the baseline's opposite corner the handle is reassigned and the
session restarts from the crossed rectangle, so the outline stays continuous.

Every calculator returns ``None`` for the object rather than a partial or
zeroed result when the computation produces unusable numbers.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional

from .config import EditorSettings
from .errors import ValidationError
from .geometry import (
    Circle,
    Handle,
    Point,
    Rectangle,
    ShapeBase,
    ShapeType,
    Star,
    Text,
    clamp_circle_to_canvas,
    clamp_star_to_canvas,
    closest_corner,
    fit_rect_to_canvas,
)
from .validation import validate_object_for_resize

LOGGER = logging.getLogger(__name__)

_LEFT_HANDLES = frozenset({Handle.NW, Handle.SW})
_TOP_HANDLES = frozenset({Handle.NW, Handle.NE})


@dataclass(frozen=True)
class ResizeSession:
    object_id: str
    origin: ShapeBase
    baseline: ShapeBase
    handle: Handle
    start: Point

    def restart(self, baseline: ShapeBase, handle: Handle, start: Point) -> "ResizeSession":
        return replace(self, baseline=baseline, handle=handle, start=start)


@dataclass(frozen=True)
class ResizeStep:
    session: ResizeSession
    obj: Optional[ShapeBase]
    crossed: bool = False


# Rectangle ------------------------------------------------------------------------


def apply_handle_delta(rect: Rectangle, handle: Handle, dx: float, dy: float) -> Rectangle:
    """Move the dragged corner by ``(dx, dy)``; the opposite corner stays put."""
    x, y, width, height = rect.x, rect.y, rect.width, rect.height
    if handle in _LEFT_HANDLES:
        x += dx
        width -= dx
    else:
        width += dx
    if handle in _TOP_HANDLES:
        y += dy
        height -= dy
    else:
        height += dy
    return rect.with_fields(x=x, y=y, width=width, height=height)


def detect_crossover(candidate: Rectangle, baseline: Rectangle, handle: Handle) -> Optional[Handle]:
    """
    Handle the drag should continue with once the dragged corner has passed the
    baseline's opposite edges, or ``None`` when it has not.
    """
    left = candidate.x
    right = candidate.x + candidate.width
    top = candidate.y
    bottom = candidate.y + candidate.height
    base_left = baseline.x
    base_right = baseline.x + baseline.width
    base_top = baseline.y
    base_bottom = baseline.y + baseline.height

    if handle in _LEFT_HANDLES:
        crossed_x = left > base_right
    else:
        crossed_x = right < base_left
    if handle in _TOP_HANDLES:
        crossed_y = top > base_bottom
    else:
        crossed_y = bottom < base_top
    if not crossed_x and not crossed_y:
        return None

    horizontal = "w" if (handle in _LEFT_HANDLES) != crossed_x else "e"
    vertical = "n" if (handle in _TOP_HANDLES) != crossed_y else "s"
    return Handle(vertical + horizontal)


def normalize_rect(rect: Rectangle) -> Rectangle:
    """Turn negative extents into a positive rectangle covering the same area."""
    x, y, width, height = rect.x, rect.y, rect.width, rect.height
    if width < 0:
        x += width
        width = -width
    if height < 0:
        y += height
        height = -height
    return rect.with_fields(x=x, y=y, width=width, height=height)


def _enforce_min_size(rect: Rectangle, baseline: Rectangle, handle: Handle, minimum: float) -> Rectangle:
    x, y, width, height = rect.x, rect.y, rect.width, rect.height
    if width < minimum:
        width = minimum
        if handle in _LEFT_HANDLES:
            x = baseline.x + baseline.width - minimum
    if height < minimum:
        height = minimum
        if handle in _TOP_HANDLES:
            y = baseline.y + baseline.height - minimum
    return rect.with_fields(x=x, y=y, width=width, height=height)


def _finite(*values: float) -> bool:
    return all(math.isfinite(value) for value in values)


def resize_rectangle(session: ResizeSession, pointer: Point, settings: EditorSettings) -> ResizeStep:
    baseline = session.baseline
    dx = pointer.x - session.start.x
    dy = pointer.y - session.start.y
    if not _finite(dx, dy):
        return ResizeStep(session, None)
    candidate = apply_handle_delta(baseline, session.handle, dx, dy)

    new_handle = detect_crossover(candidate, baseline, session.handle)
    if new_handle is not None:
        crossed = normalize_rect(candidate)
        crossed = crossed.with_fields(
            width=max(crossed.width, settings.rect_min_size),
            height=max(crossed.height, settings.rect_min_size),
        )
        crossed = fit_rect_to_canvas(crossed, settings)
        if not _finite(crossed.x, crossed.y, crossed.width, crossed.height):
            return ResizeStep(session, None)
        LOGGER.debug(
            "Crossover on %s: %s -> %s", session.object_id, session.handle.value, new_handle.value
        )
        return ResizeStep(session.restart(crossed, new_handle, pointer), crossed, crossed=True)

    sized = _enforce_min_size(candidate, baseline, session.handle, settings.rect_min_size)
    result = fit_rect_to_canvas(sized, settings)
    if not _finite(result.x, result.y, result.width, result.height):
        return ResizeStep(session, None)
    return ResizeStep(session, result)


# Radial shapes ----------------------------------------------------------------------


def _max_radius_in_canvas(center: Point, settings: EditorSettings) -> float:
    return min(center.x, center.y, settings.canvas_width - center.x, settings.canvas_height - center.y)


def resize_circle(session: ResizeSession, pointer: Point, settings: EditorSettings) -> ResizeStep:
    baseline = session.baseline
    center = Point(baseline.x, baseline.y)
    radius = center.distance_to(pointer)
    if not math.isfinite(radius):
        return ResizeStep(session, None)
    radius = min(radius, _max_radius_in_canvas(center, settings))
    radius = max(radius, settings.circle_min_radius)
    return ResizeStep(session, clamp_circle_to_canvas(baseline.with_fields(radius=radius), settings))


def resize_star(session: ResizeSession, pointer: Point, settings: EditorSettings) -> ResizeStep:
    baseline = session.baseline
    center = Point(baseline.x, baseline.y)
    outer = center.distance_to(pointer)
    if not math.isfinite(outer):
        return ResizeStep(session, None)
    outer = min(outer, _max_radius_in_canvas(center, settings))
    outer = max(outer, settings.star_min_outer_radius)
    inner = outer * settings.star_inner_ratio
    if not _finite(outer, inner) or inner <= 0:
        return ResizeStep(session, None)
    star = baseline.with_fields(outer_radius=outer, inner_radius=inner)
    return ResizeStep(session, clamp_star_to_canvas(star, settings))


# Text -----------------------------------------------------------------------------


def resize_text(session: ResizeSession, pointer: Point, settings: EditorSettings) -> ResizeStep:
    baseline = session.baseline
    dx = pointer.x - session.start.x
    if not math.isfinite(dx):
        return ResizeStep(session, None)
    left_side = session.handle in _LEFT_HANDLES
    right_edge = baseline.x + baseline.width
    minimum = settings.text_min_width

    if left_side:
        x = baseline.x + dx
        width = baseline.width - dx
    else:
        x = baseline.x
        width = baseline.width + dx

    if width < minimum:
        width = minimum
        x = right_edge - minimum if left_side else baseline.x

    if x < 0:
        width += x
        x = 0.0
    if x + width > settings.canvas_width:
        width = settings.canvas_width - x
    if width < minimum:
        width = minimum
        if x + width > settings.canvas_width:
            x = settings.canvas_width - width
    if not _finite(x, width):
        return ResizeStep(session, None)
    return ResizeStep(session, baseline.with_fields(x=x, width=width))


Resizer = Callable[[ResizeSession, Point, EditorSettings], ResizeStep]

RESIZERS: Dict[ShapeType, Resizer] = {
    ShapeType.RECTANGLE: resize_rectangle,
    ShapeType.CIRCLE: resize_circle,
    ShapeType.STAR: resize_star,
    ShapeType.TEXT: resize_text,
}


class ResizeEngine:
    """Holds the client's single active resize session."""

    def __init__(self, settings: Optional[EditorSettings] = None) -> None:
        self.settings = settings or EditorSettings()
        self.session: Optional[ResizeSession] = None

    @property
    def active(self) -> bool:
        return self.session is not None

    def hit_handle(self, obj: ShapeBase, pointer: Point) -> Optional[Handle]:
        return closest_corner(pointer, obj, self.settings)

    def begin(self, obj: ShapeBase, pointer: Point) -> Optional[ResizeSession]:
        """
        Start a session when ``pointer`` hits one of ``obj``'s handles.

        Raises ``ValidationError`` for unusable geometry; returns ``None`` when
        no handle was hit.
        """
        result = validate_object_for_resize(obj)
        if not result.valid:
            raise ValidationError(result.issues, object_id=obj.id)
        handle = self.hit_handle(obj, pointer)
        if handle is None:
            return None
        self.session = ResizeSession(
            object_id=obj.id, origin=obj, baseline=obj, handle=handle, start=pointer
        )
        return self.session

    def step(self, pointer: Point) -> Optional[ResizeStep]:
        session = self.session
        if session is None:
            return None
        if not pointer.is_finite:
            return ResizeStep(session, None)
        resizer = RESIZERS[session.baseline.shape_type]
        step = resizer(session, pointer, self.settings)
        if step.obj is not None and not validate_object_for_resize(step.obj).valid:
            LOGGER.debug("Resize of %s produced invalid geometry; ignoring", session.object_id)
            step = ResizeStep(step.session, None, step.crossed)
        self.session = step.session
        return step

    def end(self) -> Optional[ResizeSession]:
        session, self.session = self.session, None
        return session

    def cancel(self) -> None:
        self.session = None


__all__ = [
    "RESIZERS",
    "ResizeEngine",
    "ResizeSession",
    "ResizeStep",
    "apply_handle_delta",
    "detect_crossover",
    "normalize_rect",
    "resize_circle",
    "resize_rectangle",
    "resize_star",
    "resize_text",
]
