from __future__ import annotations

import logging
from typing import List

from ..geometry import Text
from .base import BaseTool, PointerEvent, ToolContext

LOGGER = logging.getLogger(__name__)


class SelectTool(BaseTool):
    """Click to select, shift-click to toggle, drag on empty space to box-select."""

    name = "select"
    cursor = "default"

    def __init__(self, context: ToolContext) -> None:
        super().__init__(context)
        self._dragging = False

    async def on_pointer_down(self, event: PointerEvent) -> None:
        selection = self.ctx.selection
        obj = self.ctx.object_at(event.point)
        if obj is None:
            selection.reset_clicks()
            if not event.shift:
                selection.clear()
            selection.begin_drag(event.point)
            self._dragging = True
            return

        if selection.register_click(obj.id, event.timestamp) and isinstance(obj, Text):
            if self.ctx.ownership.can_edit(obj):
                self.ctx.enter_text_edit(obj)
                return

        if event.shift:
            selection.toggle(obj)
        elif not selection.is_selected(obj.id) or len(selection.selected_ids) > 1:
            selection.select_single(obj)

    async def on_pointer_move(self, event: PointerEvent) -> None:
        if not self._dragging:
            return
        self.ctx.selection.update_drag(event.point, self.ctx.sync.render())

    async def on_pointer_up(self, event: PointerEvent) -> None:
        if not self._dragging:
            return
        self._dragging = False
        selection = self.ctx.selection
        if selection.drag is not None:
            selection.update_drag(event.point, self.ctx.sync.render())
        selection.end_drag(additive=event.shift)

    def cancel(self) -> List[str]:
        self._dragging = False
        self.ctx.selection.cancel_drag()
        return []


__all__ = ["SelectTool"]
