from __future__ import annotations

import logging
import math
import uuid
from typing import List, Optional

from ..errors import CanvasCoreError, CommitFailed
from ..geometry import (
    Bounds,
    Circle,
    Point,
    Rectangle,
    ShapeBase,
    ShapeType,
    Star,
    clamp_to_canvas,
)
from ..history import ActionType
from ..validation import validate_object_for_resize
from .base import BaseTool, PointerEvent, ToolContext

LOGGER = logging.getLogger(__name__)


class ShapeTool(BaseTool):
    """
    Drag out a new shape. Rectangles span the two corners; circles and stars
    grow from the press point. Releases below the minimum size are dropped.
    """

    name = "shape"
    cursor = "crosshair"

    def __init__(self, context: ToolContext, *, shape_type: ShapeType) -> None:
        super().__init__(context)
        self.shape_type = ShapeType(shape_type)
        self.name = self.shape_type.value
        self._start: Optional[Point] = None
        self._draft_id = uuid.uuid4().hex

    def build(self, start: Point, end: Point) -> Optional[ShapeBase]:
        settings = self.ctx.settings
        common = {
            "id": self._draft_id,
            "created_by": self.ctx.user_id,
            "fill": settings.default_fill,
        }
        minimum = settings.creation_min_size
        if self.shape_type is ShapeType.RECTANGLE:
            box = Bounds.from_corners(start, end)
            if box.width < minimum or box.height < minimum:
                return None
            shape: ShapeBase = Rectangle(x=box.left, y=box.top, width=box.width, height=box.height, **common)
        else:
            radius = start.distance_to(end)
            if not math.isfinite(radius) or radius < minimum:
                return None
            if self.shape_type is ShapeType.CIRCLE:
                shape = Circle(x=start.x, y=start.y, radius=radius, **common)
            else:
                shape = Star(
                    x=start.x,
                    y=start.y,
                    outer_radius=radius,
                    inner_radius=radius * settings.star_inner_ratio,
                    num_points=settings.star_default_points,
                    **common,
                )
        shape = clamp_to_canvas(shape, settings)
        if not validate_object_for_resize(shape).valid:
            return None
        return shape

    async def on_pointer_down(self, event: PointerEvent) -> None:
        if not event.point.is_finite:
            return
        self._start = event.point
        self._draft_id = uuid.uuid4().hex
        self.ctx.draft = None

    async def on_pointer_move(self, event: PointerEvent) -> None:
        if self._start is None:
            return
        self.ctx.draft = self.build(self._start, event.point)

    async def on_pointer_up(self, event: PointerEvent) -> None:
        start, self._start = self._start, None
        self.ctx.draft = None
        if start is None:
            return
        shape = self.build(start, event.point)
        if shape is None:
            LOGGER.debug("Discarding %s below minimum size", self.shape_type.value)
            return
        try:
            created = await self.ctx.backend.create_object(shape)
        except CanvasCoreError:
            raise
        except Exception as exc:
            raise CommitFailed(shape.id, exc) from exc
        self.ctx.record(ActionType.CREATE, created, None, created.as_dict())
        self.ctx.log.info("shape.create", extra={"object_id": created.id, "shape": self.shape_type})

    def cancel(self) -> List[str]:
        self._start = None
        self.ctx.draft = None
        return []


__all__ = ["ShapeTool"]
