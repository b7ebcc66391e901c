from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

from ..config import EditorSettings
from ..errors import LockDenied
from ..geometry import Point, ShapeBase, bounds, is_finite_number, rotate_point
from ..history import ActionType
from .base import BaseTool, PointerEvent, ToolContext

LOGGER = logging.getLogger(__name__)

_ROTATION = ("rotation",)


def normalize_degrees(angle: float) -> float:
    angle = math.fmod(angle, 360.0)
    if angle < 0:
        angle += 360.0
    return 0.0 if angle >= 360.0 else angle


def handle_position(obj: ShapeBase, settings: EditorSettings) -> Optional[Point]:
    """Rotation handle: ``rotation_handle_offset`` above the top edge, turning with the object."""
    box = bounds(obj, settings)
    rotation = obj.rotation or 0.0
    if box is None or not is_finite_number(rotation):
        return None
    center = box.center
    above = Point(center.x, box.top - settings.rotation_handle_offset)
    return rotate_point(above, center, rotation)


def pointer_angle(center: Point, point: Point) -> float:
    """Clockwise degrees from straight up."""
    return normalize_degrees(math.degrees(math.atan2(point.y - center.y, point.x - center.x)) + 90.0)


def snap(angle: float, step: float) -> float:
    return normalize_degrees(round(angle / step) * step)


@dataclass(frozen=True)
class RotateSession:
    origin: ShapeBase
    center: Point
    start_angle: float

    @property
    def object_id(self) -> str:
        return self.origin.id

    @property
    def initial(self) -> float:
        return self.origin.rotation or 0.0


class RotateTool(BaseTool):
    name = "rotate"
    cursor = "default"

    def __init__(self, context: ToolContext) -> None:
        super().__init__(context)
        self.session: Optional[RotateSession] = None

    def _hit_handle(self, point: Point) -> Optional[ShapeBase]:
        settings = self.ctx.settings
        for object_id in self.ctx.selection.confirmed_ids():
            obj = self.ctx.sync.current(object_id)
            if obj is None:
                continue
            handle = handle_position(obj, settings)
            if handle is not None and handle.distance_to(point) <= settings.rotation_handle_radius:
                return obj
        return None

    async def on_pointer_down(self, event: PointerEvent) -> None:
        if self.busy or self.session is not None:
            return
        target = self._hit_handle(event.point)
        if target is not None:
            box = bounds(target, self.ctx.settings)
            self.session = RotateSession(
                origin=target,
                center=box.center,
                start_angle=pointer_angle(box.center, event.point),
            )
            self.ctx.log.info("rotate.start", extra={"object_id": target.id})
            return
        clicked = self.ctx.object_at(event.point)
        if clicked is None:
            self.ctx.selection.clear()
            return
        await self._select_for_gesture(clicked)

    async def on_pointer_move(self, event: PointerEvent) -> None:
        session = self.session
        if session is None or not event.point.is_finite:
            return
        if not self.ctx.ownership.owns(session.object_id):
            self.cancel()
            raise LockDenied(session.object_id)
        delta = pointer_angle(session.center, event.point) - session.start_angle
        rotation = normalize_degrees(session.initial + delta)
        if event.shift:
            rotation = snap(rotation, self.ctx.settings.rotation_snap_degrees)
        self.ctx.sync.preview(session.origin.with_fields(rotation=rotation), fields=_ROTATION)

    async def on_pointer_up(self, event: PointerEvent) -> None:
        session, self.session = self.session, None
        if session is None:
            return
        override = self.ctx.sync.overrides.get(session.object_id)
        if override is None:
            return
        await self.ctx.sync.commit(override, fields=_ROTATION, keep_locked=True)
        if override.rotation != session.initial:
            self.ctx.record(
                ActionType.ROTATE,
                override,
                {"rotation": session.initial},
                {"rotation": override.rotation},
            )
        self.ctx.log.info("rotate.commit", extra={"object_id": session.object_id, "rotation": override.rotation})

    def cursor_hint(self) -> str:
        return "grabbing" if self.session is not None else self.cursor

    def cancel(self) -> List[str]:
        session, self.session = self.session, None
        if session is None:
            return []
        self.ctx.sync.abandon(session.object_id)
        return [session.object_id]


__all__ = ["RotateTool", "handle_position", "normalize_degrees", "pointer_angle", "snap"]
