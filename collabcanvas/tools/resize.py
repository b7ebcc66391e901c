from __future__ import annotations

import logging
from typing import List, Optional

from ..errors import LockDenied
from ..geometry import Handle, Point, ShapeBase
from ..history import ActionType
from .base import BaseTool, PointerEvent, ToolContext

LOGGER = logging.getLogger(__name__)

_CURSORS = {
    Handle.NW: "nwse-resize",
    Handle.SE: "nwse-resize",
    Handle.NE: "nesw-resize",
    Handle.SW: "nesw-resize",
}


class ResizeTool(BaseTool):
    """
    Drag a corner handle of the selected object.

    Clicking an unselected editable object selects and locks it first; handle
    detection only runs once the lock is held.
    """

    name = "resize"
    cursor = "default"

    def __init__(self, context: ToolContext) -> None:
        super().__init__(context)
        self._hover: Optional[Handle] = None

    def _handle_target(self, point: Point) -> Optional[ShapeBase]:
        for object_id in self.ctx.selection.confirmed_ids():
            obj = self.ctx.sync.current(object_id)
            if obj is not None and self.ctx.resize.hit_handle(obj, point) is not None:
                return obj
        return None

    async def on_pointer_down(self, event: PointerEvent) -> None:
        if self.busy or self.ctx.resize.active:
            return
        target = self._handle_target(event.point)
        if target is None:
            clicked = self.ctx.object_at(event.point)
            if clicked is None:
                self.ctx.selection.clear()
                return
            target = await self._select_for_gesture(clicked)
            if target is None:
                return
        session = self.ctx.resize.begin(target, event.point)
        if session is None:
            return
        self._hover = session.handle
        self.ctx.log.info(
            "resize.start",
            extra={"object_id": session.object_id, "handle": session.handle, "shape": target.shape_type},
        )

    async def on_pointer_move(self, event: PointerEvent) -> None:
        resize = self.ctx.resize
        if self.busy:
            return
        if not resize.active:
            target = self._handle_target(event.point)
            self._hover = resize.hit_handle(target, event.point) if target is not None else None
            return
        session = resize.session
        if not self.ctx.ownership.owns(session.object_id):
            self.cancel()
            raise LockDenied(session.object_id)
        step = resize.step(event.point)
        if step is None or step.obj is None:
            return
        self.ctx.sync.preview(step.obj)
        if step.crossed:
            self._hover = step.session.handle
            self.ctx.log.info(
                "resize.crossover",
                extra={"object_id": session.object_id, "from": session.handle, "to": step.session.handle},
            )

    async def on_pointer_up(self, event: PointerEvent) -> None:
        session = self.ctx.resize.end()
        if session is None:
            return
        override = self.ctx.sync.overrides.get(session.object_id)
        if override is None or not self.ctx.ownership.owns(session.object_id):
            self.ctx.sync.abandon(session.object_id)
            self.ctx.log.info("resize.abandon", extra={"object_id": session.object_id})
            return
        before = session.origin.geometry()
        after = override.geometry()
        await self.ctx.sync.commit(override, keep_locked=True)
        if before != after:
            self.ctx.record(ActionType.RESIZE, override, before, after, handle=session.handle.value)
        self.ctx.log.info("resize.commit", extra={"object_id": session.object_id, "geometry": after})

    def cursor_hint(self) -> str:
        if self._hover is not None:
            return _CURSORS[self._hover]
        return self.cursor

    def cancel(self) -> List[str]:
        session = self.ctx.resize.session
        self.ctx.resize.cancel()
        self._hover = None
        if session is None:
            return []
        self.ctx.sync.abandon(session.object_id)
        self.ctx.log.info("resize.abandon", extra={"object_id": session.object_id})
        return [session.object_id]


__all__ = ["ResizeTool"]
