from __future__ import annotations

import logging
from typing import List, Optional

from ..errors import CanvasCoreError, CommitFailed, LockDenied, StaleReference
from ..history import ActionType
from .base import BaseTool, PointerEvent, ToolContext

LOGGER = logging.getLogger(__name__)


class DeleteTool(BaseTool):
    """Press on an object and release to delete it."""

    name = "delete"
    cursor = "not-allowed"

    def __init__(self, context: ToolContext) -> None:
        super().__init__(context)
        self._target: Optional[str] = None

    async def on_pointer_down(self, event: PointerEvent) -> None:
        clicked = self.ctx.object_at(event.point)
        if clicked is None:
            self._target = None
            return
        if not self.ctx.ownership.can_edit(clicked):
            self._target = None
            raise LockDenied(clicked.id, holder=clicked.locked_by)
        self._target = clicked.id

    async def on_pointer_up(self, event: PointerEvent) -> None:
        object_id, self._target = self._target, None
        if object_id is None:
            return
        current = self.ctx.backend.get_object(object_id)
        if current is None:
            raise StaleReference(object_id)
        if not self.ctx.ownership.can_edit(current):
            raise LockDenied(object_id, holder=current.locked_by)
        outcome = await self.ctx.ownership.acquire(object_id)
        if not outcome.granted:
            raise LockDenied(object_id, holder=outcome.holder)
        self.ctx.sync.abandon(object_id)
        try:
            await self.ctx.backend.delete_object(object_id)
        except CanvasCoreError:
            raise
        except Exception as exc:
            raise CommitFailed(object_id, exc) from exc
        self.ctx.selection.discard(object_id)
        snapshot = current.as_dict()
        snapshot["locked_by"] = None
        self.ctx.record(ActionType.DELETE, current, snapshot, None)
        self.ctx.log.info("shape.delete", extra={"object_id": object_id})

    def cancel(self) -> List[str]:
        self._target = None
        return []


__all__ = ["DeleteTool"]
