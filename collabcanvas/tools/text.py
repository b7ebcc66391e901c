from __future__ import annotations

import logging

from ..geometry import Text
from .base import BaseTool, PointerEvent

LOGGER = logging.getLogger(__name__)


class TextTool(BaseTool):
    """Click existing text to edit it in place, or empty canvas to start new text."""

    name = "text"
    cursor = "text"

    async def on_pointer_down(self, event: PointerEvent) -> None:
        if self.busy:
            return
        clicked = self.ctx.object_at(event.point)
        if clicked is None:
            if event.point.is_finite:
                self.ctx.selection.clear()
                self.ctx.begin_new_text(event.point)
            return
        if not isinstance(clicked, Text):
            return
        target = await self._select_for_gesture(clicked)
        if target is not None:
            self.ctx.enter_text_edit(target)


__all__ = ["TextTool"]
