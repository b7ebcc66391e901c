from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..errors import CanvasCoreError, LockDenied
from ..geometry import Point, ShapeBase, clamp_to_canvas
from ..history import ActionType
from .base import BaseTool, PointerEvent, ToolContext

LOGGER = logging.getLogger(__name__)

_POSITION = ("x", "y")


class MoveTool(BaseTool):
    """Drag the current selection; each object keeps its offset from the press point."""

    name = "move"
    cursor = "move"

    def __init__(self, context: ToolContext) -> None:
        super().__init__(context)
        self._start: Optional[Point] = None
        self._origins: Dict[str, ShapeBase] = {}
        self._moved = False

    async def on_pointer_down(self, event: PointerEvent) -> None:
        if self.busy or self._start is not None:
            return
        clicked = self.ctx.object_at(event.point)
        if clicked is None:
            self.ctx.selection.clear()
            return
        if not self.ctx.selection.is_selected(clicked.id) or not self.ctx.ownership.owns(clicked.id):
            if await self._select_for_gesture(clicked) is None:
                return
        origins = {}
        for object_id in self.ctx.selection.confirmed_ids():
            obj = self.ctx.sync.current(object_id)
            if obj is not None:
                origins[object_id] = obj
        if not origins:
            return
        self._origins = origins
        self._start = event.point
        self._moved = False

    async def on_pointer_move(self, event: PointerEvent) -> None:
        if self.busy or self._start is None:
            return
        dx = event.point.x - self._start.x
        dy = event.point.y - self._start.y
        if not self._moved and Point(0, 0).distance_to(Point(dx, dy)) < self.ctx.settings.move_threshold:
            return
        self._moved = True
        lost = []
        for object_id, origin in self._origins.items():
            if not self.ctx.ownership.owns(object_id):
                lost.append(object_id)
                continue
            moved = origin.with_fields(x=origin.x + dx, y=origin.y + dy)
            self.ctx.sync.preview(clamp_to_canvas(moved, self.ctx.settings), fields=_POSITION)
        for object_id in lost:
            self._origins.pop(object_id)
            self.ctx.sync.abandon(object_id)
        if lost:
            raise LockDenied(lost[0])

    async def on_pointer_up(self, event: PointerEvent) -> None:
        origins, moved = self._origins, self._moved
        self._start = None
        self._origins = {}
        self._moved = False
        if not moved:
            for object_id in origins:
                self.ctx.sync.abandon(object_id)
            return
        first_error: Optional[CanvasCoreError] = None
        for object_id, origin in origins.items():
            override = self.ctx.sync.overrides.get(object_id)
            if override is None:
                continue
            try:
                await self.ctx.sync.commit(override, fields=_POSITION, keep_locked=True)
            except CanvasCoreError as exc:
                LOGGER.warning("Move of %s not saved: %s", object_id, exc)
                first_error = first_error or exc
                continue
            before = {"x": origin.x, "y": origin.y}
            after = {"x": override.x, "y": override.y}
            if before != after:
                self.ctx.record(ActionType.MOVE, override, before, after)
        self.ctx.log.info("move.commit", extra={"objects": sorted(origins)})
        if first_error is not None:
            raise first_error

    def cancel(self) -> List[str]:
        interrupted = list(self._origins) if self._moved else []
        for object_id in self._origins:
            self.ctx.sync.abandon(object_id)
        self._start = None
        self._origins = {}
        self._moved = False
        return interrupted


__all__ = ["MoveTool"]
