from __future__ import annotations

"""
Single, toggle and drag-rectangle selection with optimistic locking.

The visible selection changes immediately; the matching acquire/release runs
in the background. Operations on the same object id are chained so that a
quick select/deselect/select sequence resolves in order. A failed acquire
removes the object from the selection again and raises a notice.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from .collab.ownership import LockStatus, OwnershipManager
from .collab.tasks import TaskTracker
from .config import EditorSettings
from .errors import LockDenied, Notice, StaleReference
from .geometry import Bounds, BoundsCache, Point, ShapeBase
from .obs import StructLogAdapter, get_logger

LOGGER = logging.getLogger(__name__)

NotifyCallback = Callable[[Notice], None]


class SelectionMode(str, Enum):
    NONE = "none"
    SINGLE = "single"
    MULTI = "multi"


@dataclass(frozen=True)
class DragSelection:
    start: Point
    current: Point
    candidates: FrozenSet[str] = frozenset()

    @property
    def rect(self) -> Bounds:
        return Bounds.from_corners(self.start, self.current)

    def exceeds(self, threshold: float) -> bool:
        rect = self.rect
        return rect.width > threshold and rect.height > threshold


class SelectionEngine:
    def __init__(
        self,
        ownership: OwnershipManager,
        *,
        settings: Optional[EditorSettings] = None,
        tracker: Optional[TaskTracker] = None,
        notify: Optional[NotifyCallback] = None,
        bounds_cache: Optional[BoundsCache] = None,
        log: Optional[StructLogAdapter] = None,
    ) -> None:
        self._ownership = ownership
        self.settings = settings or EditorSettings()
        self._tracker = tracker or TaskTracker()
        self._notify = notify or (lambda notice: None)
        self.bounds_cache = bounds_cache or BoundsCache(self.settings)
        self._log = log or get_logger(__name__)
        self._selected: Dict[str, None] = {}
        self._ops: Dict[str, asyncio.Task[None]] = {}
        self._last_click: Optional[Tuple[str, float]] = None
        self.drag: Optional[DragSelection] = None

    # State --------------------------------------------------------------------
    @property
    def selected_ids(self) -> Tuple[str, ...]:
        return tuple(self._selected)

    @property
    def mode(self) -> SelectionMode:
        if not self._selected:
            return SelectionMode.NONE
        if len(self._selected) == 1:
            return SelectionMode.SINGLE
        return SelectionMode.MULTI

    def is_selected(self, object_id: str) -> bool:
        return object_id in self._selected

    def confirmed_ids(self) -> Tuple[str, ...]:
        """Selected objects whose lock this client actually holds."""
        return tuple(object_id for object_id in self._selected if self._ownership.owns(object_id))

    def pending_for(self, object_id: str) -> Optional[asyncio.Task[None]]:
        return self._ops.get(object_id)

    # Background lock operations -----------------------------------------------
    def _schedule(
        self, object_id: str, operation: Callable[[str], Awaitable[None]], label: str
    ) -> asyncio.Task[None]:
        previous = self._ops.get(object_id)

        async def _run() -> None:
            if previous is not None and not previous.done():
                await asyncio.wait([previous])
            await operation(object_id)

        task = self._tracker.spawn(_run(), name=f"{label}:{object_id}")
        self._ops[object_id] = task

        def _done(finished: asyncio.Task[None]) -> None:
            if self._ops.get(object_id) is finished:
                self._ops.pop(object_id, None)

        task.add_done_callback(_done)
        return task

    async def _acquire_op(self, object_id: str) -> None:
        if object_id not in self._selected:
            return
        outcome = await self._ownership.acquire(object_id)
        if outcome.granted:
            if object_id not in self._selected:
                await self._ownership.release(object_id)
            return
        if outcome.status is LockStatus.PENDING:
            return
        self._selected.pop(object_id, None)
        if outcome.status is LockStatus.STALE:
            error = StaleReference(object_id)
        else:
            error = LockDenied(object_id, holder=outcome.holder)
        self._log.warning(
            "selection.rollback",
            extra={"object_id": object_id, "status": outcome.status, "holder": outcome.holder},
        )
        self._notify(Notice.from_error(error))

    async def _release_op(self, object_id: str) -> None:
        if object_id in self._selected:
            return
        await self._ownership.release(object_id)

    def _lock(self, object_id: str) -> asyncio.Task[None]:
        return self._schedule(object_id, self._acquire_op, "select")

    def _unlock(self, object_id: str) -> asyncio.Task[None]:
        self._ownership.forget(object_id)
        return self._schedule(object_id, self._release_op, "deselect")

    def _refuse_if_locked(self, obj: ShapeBase) -> bool:
        if self._ownership.can_edit(obj):
            return False
        error = LockDenied(obj.id, holder=obj.locked_by)
        self._log.info("selection.denied", extra={"object_id": obj.id, "holder": obj.locked_by})
        self._notify(Notice.from_error(error))
        return True

    def _changed(self) -> None:
        self._log.debug("selection.changed", extra={"selected": list(self._selected), "mode": self.mode})

    # Selection modes ------------------------------------------------------------
    def select_single(self, obj: ShapeBase) -> Optional[asyncio.Task[None]]:
        """
        Replace the selection with ``obj``.

        Returns the background acquire task (``None`` when the object is refused
        or already held).
        """
        if self._refuse_if_locked(obj):
            return None
        previous = [object_id for object_id in self._selected if object_id != obj.id]
        self._selected = {obj.id: None}
        for object_id in previous:
            self._unlock(object_id)
        self._changed()
        if self._ownership.owns(obj.id) and obj.id not in self._ops:
            return None
        return self._lock(obj.id)

    def toggle(self, obj: ShapeBase) -> Optional[asyncio.Task[None]]:
        if obj.id in self._selected:
            self._selected.pop(obj.id)
            self._changed()
            return self._unlock(obj.id)
        if self._refuse_if_locked(obj):
            return None
        self._selected[obj.id] = None
        self._changed()
        return self._lock(obj.id)

    def clear(self) -> List[asyncio.Task[None]]:
        previous = list(self._selected)
        self._selected = {}
        if previous:
            self._changed()
        return [self._unlock(object_id) for object_id in previous]

    def deselect(self, object_ids: Iterable[str]) -> List[asyncio.Task[None]]:
        tasks = []
        for object_id in object_ids:
            self._selected.pop(object_id, None)
            tasks.append(self._unlock(object_id))
        if tasks:
            self._changed()
        return tasks

    def discard(self, object_id: str) -> None:
        """Drop an object from the selection without a remote release."""
        self._selected.pop(object_id, None)
        self._ownership.forget(object_id)
        self._changed()

    # Double click -----------------------------------------------------------------
    def register_click(self, object_id: str, timestamp: float) -> bool:
        """True when this click completes a double-click on the same object."""
        last = self._last_click
        if last is not None and last[0] == object_id and 0 <= timestamp - last[1] < self.settings.double_click_seconds:
            self._last_click = None
            return True
        self._last_click = (object_id, timestamp)
        return False

    def reset_clicks(self) -> None:
        self._last_click = None

    # Drag rectangle -----------------------------------------------------------------
    def begin_drag(self, point: Point) -> DragSelection:
        self.drag = DragSelection(start=point, current=point)
        return self.drag

    def contained_in(self, rect: Bounds, objects: Iterable[ShapeBase]) -> FrozenSet[str]:
        members = set()
        for obj in objects:
            if not self._ownership.can_edit(obj):
                continue
            box = self.bounds_cache.get(obj)
            if box is not None and rect.contains(box):
                members.add(obj.id)
        return frozenset(members)

    def update_drag(self, point: Point, objects: Iterable[ShapeBase]) -> Optional[DragSelection]:
        if self.drag is None:
            return None
        objects = list(objects)
        self.bounds_cache.prune(obj.id for obj in objects)
        moved = replace(self.drag, current=point)
        self.drag = replace(moved, candidates=self.contained_in(moved.rect, objects))
        return self.drag

    def end_drag(self, *, additive: bool = False) -> List[str]:
        """
        Finish the rectangle gesture and lock its members in parallel.

        A rectangle whose width or height does not exceed the drag threshold
        is treated as an accidental click and leaves the selection untouched.
        """
        drag, self.drag = self.drag, None
        if drag is None or not drag.exceeds(self.settings.drag_select_threshold):
            return []
        members = sorted(drag.candidates)
        keep = list(self._selected) if additive else []
        released = [object_id for object_id in self._selected if object_id not in members and object_id not in keep]
        self._selected = dict.fromkeys(keep + [object_id for object_id in members if object_id not in keep])
        for object_id in released:
            self._unlock(object_id)
        for object_id in members:
            if not self._ownership.owns(object_id):
                self._lock(object_id)
        self._changed()
        self._log.info("selection.drag", extra={"members": members, "additive": additive})
        return members

    def cancel_drag(self) -> None:
        self.drag = None


__all__ = ["DragSelection", "SelectionEngine", "SelectionMode"]
