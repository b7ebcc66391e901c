from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..collab.backend import CanvasBackend
from ..collab.ownership import OwnershipManager
from ..collab.sync import SyncLayer
from ..collab.tasks import TaskTracker
from ..config import EditorSettings
from ..errors import LockDenied, Notice, StaleReference
from ..geometry import Point, ShapeBase, Text
from ..history import ActionHistory, ActionRecord, ActionType
from ..obs import StructLogAdapter
from ..resize import ResizeEngine
from ..selection import SelectionEngine

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PointerEvent:
    point: Point
    timestamp: float = field(default_factory=time.monotonic)
    shift: bool = False


@dataclass
class TextEditSession:
    """Text being edited in place; ``object_id`` is ``None`` for new text."""

    point: Point
    object_id: Optional[str] = None
    original: str = ""


@dataclass
class ToolContext:
    """Everything a tool may touch. Shared by all tools of one editor."""

    backend: CanvasBackend
    canvas_id: str
    user_id: str
    settings: EditorSettings
    ownership: OwnershipManager
    selection: SelectionEngine
    sync: SyncLayer
    history: ActionHistory
    resize: ResizeEngine
    tracker: TaskTracker
    notify: Callable[[Notice], None]
    log: StructLogAdapter
    draft: Optional[ShapeBase] = None
    text_edit: Optional[TextEditSession] = None

    def object_at(self, point: Point) -> Optional[ShapeBase]:
        return self.backend.find_object_at(point)

    def current(self, object_id: str) -> ShapeBase:
        obj = self.sync.current(object_id)
        if obj is None:
            raise StaleReference(object_id)
        return obj

    def record(
        self,
        action: ActionType,
        obj: ShapeBase,
        before: Optional[Mapping[str, Any]],
        after: Optional[Mapping[str, Any]],
        **metadata: Any,
    ) -> ActionRecord:
        metadata.setdefault("shape_type", obj.shape_type.value)
        return self.history.record(
            action, obj.id, before, after, metadata=metadata, user_id=self.user_id
        )

    async def ensure_selected(self, obj: ShapeBase) -> Optional[ShapeBase]:
        """
        Auto-select ``obj`` and wait until its lock resolved.

        Returns the fresh object when this client now holds it, ``None`` when the
        acquire was refused (the selection engine already raised the notice).
        """
        if not self.ownership.can_edit(obj):
            raise LockDenied(obj.id, holder=obj.locked_by)
        if self.selection.is_selected(obj.id) and self.ownership.owns(obj.id):
            return self.current(obj.id)
        task = self.selection.select_single(obj)
        if task is not None:
            await asyncio.wait([task])
        if not self.ownership.owns(obj.id) or not self.selection.is_selected(obj.id):
            return None
        return self.current(obj.id)

    def enter_text_edit(self, obj: Text) -> TextEditSession:
        self.text_edit = TextEditSession(point=Point(obj.x, obj.y), object_id=obj.id, original=obj.text)
        self.log.info("text.edit", extra={"object_id": obj.id})
        return self.text_edit

    def begin_new_text(self, point: Point) -> TextEditSession:
        self.text_edit = TextEditSession(point=point)
        self.log.info("text.new", extra={"point": point})
        return self.text_edit


class BaseTool:
    """
    One interaction mode. Exactly one tool receives pointer events at a time.

    ``cancel`` must drop every piece of gesture state synchronously and return
    the ids whose locks were taken for the interrupted gesture.
    """

    name = "tool"
    cursor = "default"

    def __init__(self, context: ToolContext) -> None:
        self.ctx = context
        self._awaiting_lock = False
        self._released_early = False
        self._active = True
        self.pending_target: Optional[str] = None

    @property
    def busy(self) -> bool:
        """True while a pointer-down is waiting on its lock acquire."""
        return self._awaiting_lock

    def release_early(self) -> None:
        """Pointer went up before the pending lock resolved; skip the gesture."""
        self._released_early = True

    async def _select_for_gesture(self, obj: ShapeBase) -> Optional[ShapeBase]:
        self._awaiting_lock = True
        self._released_early = False
        self.pending_target = obj.id
        try:
            target = await self.ctx.ensure_selected(obj)
        finally:
            self._awaiting_lock = False
            self.pending_target = None
        if not self._active:
            # Switched away while the acquire was in flight; give the lock back.
            if target is not None:
                self.ctx.selection.deselect([target.id])
            return None
        if self._released_early:
            return None
        return target

    async def on_pointer_down(self, event: PointerEvent) -> None:
        return None

    async def on_pointer_move(self, event: PointerEvent) -> None:
        return None

    async def on_pointer_up(self, event: PointerEvent) -> None:
        return None

    def cursor_hint(self) -> str:
        return self.cursor

    def cancel(self) -> List[str]:
        return []

    def deactivate(self) -> List[str]:
        """Cancel for good: a pointer-down still awaiting its lock will not start a gesture."""
        self._active = False
        return self.cancel()

    def describe(self) -> Dict[str, Any]:
        return {"tool": self.name, "cursor": self.cursor_hint(), "busy": self.busy}


__all__ = ["BaseTool", "PointerEvent", "TextEditSession", "ToolContext"]
