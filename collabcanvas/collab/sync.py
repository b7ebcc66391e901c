from __future__ import annotations

"""
Optimistic override cache, throttled ephemeral previews and the single
authoritative commit that ends a gesture.

Rendering reads overrides first and falls back to the authoritative snapshot.
An override never outlives its gesture: commit and abandon both drop it,
whatever the backend answered.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from ..config import EditorSettings
from ..errors import CommitFailed, LockDenied, StaleReference, ValidationError
from ..geometry import ShapeBase, ShapeType
from ..validation import sanitize_object_update, validate_object_for_resize
from .backend import CanvasBackend
from .ownership import OwnershipManager
from .tasks import TaskTracker

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


class BroadcastThrottle:
    """Per-object minimum interval between ephemeral broadcasts."""

    def __init__(self, interval: float, *, clock: Clock = time.monotonic) -> None:
        self.interval = interval
        self._clock = clock
        self._last: Dict[str, float] = {}

    def ready(self, object_id: str) -> bool:
        now = self._clock()
        last = self._last.get(object_id)
        if last is not None and now - last < self.interval:
            return False
        self._last[object_id] = now
        return True

    def reset(self, object_id: str) -> None:
        self._last.pop(object_id, None)


class OverrideCache:
    def __init__(self) -> None:
        self._entries: Dict[str, ShapeBase] = {}

    def get(self, object_id: str) -> Optional[ShapeBase]:
        return self._entries.get(object_id)

    def set(self, obj: ShapeBase) -> None:
        self._entries[obj.id] = obj

    def pop(self, object_id: str) -> Optional[ShapeBase]:
        return self._entries.pop(object_id, None)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def ids(self) -> List[str]:
        return list(self._entries)

    def merge(self, objects: Iterable[ShapeBase]) -> List[ShapeBase]:
        """Authoritative objects with any local override substituted in place."""
        return [self._entries.get(obj.id, obj) for obj in objects]


class SyncLayer:
    def __init__(
        self,
        backend: CanvasBackend,
        canvas_id: str,
        ownership: OwnershipManager,
        *,
        settings: Optional[EditorSettings] = None,
        tracker: Optional[TaskTracker] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._backend = backend
        self.canvas_id = canvas_id
        self._ownership = ownership
        self.settings = settings or EditorSettings()
        self._tracker = tracker or TaskTracker()
        self.overrides = OverrideCache()
        self.throttle = BroadcastThrottle(self.settings.broadcast_interval, clock=clock)

    # Reads --------------------------------------------------------------------
    def current(self, object_id: str) -> Optional[ShapeBase]:
        override = self.overrides.get(object_id)
        if override is not None:
            return override
        return self._backend.get_object(object_id)

    def render(self) -> List[ShapeBase]:
        return self.overrides.merge(self._backend.list_objects())

    # Ephemeral tier -----------------------------------------------------------
    @staticmethod
    def _fields_of(obj: ShapeBase, names: Optional[Sequence[str]]) -> Dict[str, Any]:
        if names is None:
            names = tuple(obj.GEOMETRY_FIELDS) + ("rotation",)
        return {name: getattr(obj, name) for name in names}

    def preview(self, obj: ShapeBase, *, fields: Optional[Sequence[str]] = None) -> Optional[ShapeBase]:
        """
        Apply ``obj`` as the local override and broadcast it if the throttle allows.

        Invalid geometry is dropped and ``None`` returned; the previous override
        (or authoritative state) stays in place.
        """
        if not self._ownership.owns(obj.id):
            LOGGER.debug("Ignoring preview for %s: not held", obj.id)
            return None
        result = validate_object_for_resize(obj)
        if not result.valid:
            LOGGER.debug("Discarding invalid preview for %s: %s", obj.id, result.error)
            return None
        self.overrides.set(obj)
        if self.throttle.ready(obj.id):
            payload = sanitize_object_update(self._fields_of(obj, fields), obj.shape_type)
            if payload:
                try:
                    self._backend.broadcast_ephemeral(self.canvas_id, obj.id, payload)
                except Exception as exc:
                    LOGGER.warning("Ephemeral broadcast for %s failed: %s", obj.id, exc)
        return obj

    async def _clear_ephemeral(self, object_id: str) -> None:
        try:
            await self._backend.clear_ephemeral(self.canvas_id, object_id)
        except Exception as exc:
            LOGGER.warning("Clearing preview for %s failed: %s", object_id, exc)

    # Authoritative tier -------------------------------------------------------
    async def commit(
        self,
        obj: ShapeBase,
        *,
        fields: Optional[Sequence[str]] = None,
        keep_locked: bool = True,
    ) -> None:
        """Issue the one authoritative write for a completed gesture."""
        try:
            result = validate_object_for_resize(obj)
            if not result.valid:
                raise ValidationError(result.issues, object_id=obj.id)
            await self.commit_fields(
                obj.id,
                self._fields_of(obj, fields),
                obj.shape_type,
                keep_locked=keep_locked,
            )
        finally:
            self.overrides.pop(obj.id)
            self.throttle.reset(obj.id)

    async def commit_fields(
        self,
        object_id: str,
        fields: Mapping[str, Any],
        shape_type: Optional[ShapeType] = None,
        *,
        keep_locked: bool = True,
    ) -> None:
        if not self._ownership.owns(object_id):
            raise LockDenied(object_id)
        payload = sanitize_object_update(fields, shape_type)
        if not payload:
            self.overrides.pop(object_id)
            raise ValidationError(["no valid properties"], object_id=object_id)
        try:
            await self._backend.commit_authoritative(object_id, payload, keep_locked)
        except (LockDenied, StaleReference):
            self._ownership.forget(object_id)
            raise
        except Exception as exc:
            LOGGER.error("Commit for %s failed: %s", object_id, exc)
            await self._ownership.release(object_id)
            raise CommitFailed(object_id, exc) from exc
        finally:
            self.overrides.pop(object_id)
            self.throttle.reset(object_id)
            await self._clear_ephemeral(object_id)
        if not keep_locked:
            self._ownership.forget(object_id)
        LOGGER.debug("Committed %s: %s", object_id, sorted(payload))

    def abandon(self, object_id: str) -> Optional[asyncio.Task[None]]:
        """Drop the override now; clear the remote preview in the background."""
        dropped = self.overrides.pop(object_id)
        self.throttle.reset(object_id)
        if dropped is None:
            return None
        return self._tracker.spawn(self._clear_ephemeral(object_id), name=f"abandon:{object_id}")


__all__ = ["BroadcastThrottle", "OverrideCache", "SyncLayer"]
