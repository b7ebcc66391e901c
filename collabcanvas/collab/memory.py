from __future__ import annotations

"""
In-memory canvas store shared by any number of client sessions.

The store is the system of record for tests and local tooling: it keeps the
authoritative objects, the per-object lock holders and the per-canvas
ephemeral previews. Commits are last-writer-wins; only the lock decides who
may write.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..config import EditorSettings
from ..errors import CommitFailed, LockDenied, StaleReference
from ..geometry import Point, ShapeBase, parse_object, topmost_at

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitRecord:
    object_id: str
    user_id: str
    fields: Dict[str, Any]
    keep_locked: bool


@dataclass(frozen=True)
class BroadcastRecord:
    canvas_id: str
    object_id: str
    user_id: str
    fields: Dict[str, Any]


class InMemoryCanvasStore:
    def __init__(self, *, settings: Optional[EditorSettings] = None) -> None:
        self.settings = settings or EditorSettings()
        self._objects: Dict[str, ShapeBase] = {}
        self._locks: Dict[str, str] = {}
        self._ephemeral: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._marker = 0
        self.commits: List[CommitRecord] = []
        self.broadcasts: List[BroadcastRecord] = []

    # Snapshot access ----------------------------------------------------------
    def _next_marker(self) -> float:
        self._marker += 1
        return float(self._marker)

    def put(self, obj: ShapeBase | Mapping[str, Any]) -> ShapeBase:
        """Seed an object directly, bypassing locks."""
        obj = parse_object(obj)
        obj = obj.with_fields(modified_at=self._next_marker())
        self._objects[obj.id] = obj
        if obj.locked_by:
            self._locks[obj.id] = obj.locked_by
        return obj

    def get(self, object_id: str) -> Optional[ShapeBase]:
        return self._objects.get(object_id)

    def objects(self) -> List[ShapeBase]:
        return list(self._objects.values())

    def holder(self, object_id: str) -> Optional[str]:
        return self._locks.get(object_id)

    def find_at(self, point: Point) -> Optional[ShapeBase]:
        return topmost_at(self._objects.values(), point, self.settings)

    def ephemeral(self, canvas_id: str) -> Dict[str, Dict[str, Any]]:
        return {key: dict(value) for key, value in self._ephemeral.get(canvas_id, {}).items()}

    # Locks --------------------------------------------------------------------
    def _require(self, object_id: str) -> ShapeBase:
        obj = self._objects.get(object_id)
        if obj is None:
            raise StaleReference(object_id)
        return obj

    def _check_holder(self, object_id: str, user_id: str) -> None:
        holder = self._locks.get(object_id)
        if holder is not None and holder != user_id:
            raise LockDenied(object_id, holder=holder)

    def _set_lock(self, object_id: str, user_id: Optional[str]) -> None:
        obj = self._objects[object_id]
        if user_id is None:
            self._locks.pop(object_id, None)
        else:
            self._locks[object_id] = user_id
        self._objects[object_id] = obj.with_fields(
            locked_by=user_id, modified_at=self._next_marker()
        )

    def acquire(self, object_id: str, user_id: str) -> None:
        self._require(object_id)
        self._check_holder(object_id, user_id)
        if self._locks.get(object_id) != user_id:
            self._set_lock(object_id, user_id)
            LOGGER.debug("Lock on %s granted to %s", object_id, user_id)

    def release(self, object_id: str, user_id: str) -> None:
        if object_id not in self._objects:
            self._locks.pop(object_id, None)
            return
        if self._locks.get(object_id) == user_id:
            self._set_lock(object_id, None)
            LOGGER.debug("Lock on %s released by %s", object_id, user_id)

    # Writes -------------------------------------------------------------------
    def commit(
        self,
        object_id: str,
        user_id: str,
        fields: Mapping[str, Any],
        *,
        keep_locked: bool,
    ) -> ShapeBase:
        obj = self._require(object_id)
        self._check_holder(object_id, user_id)
        allowed = {key: value for key, value in fields.items() if key in type(obj).model_fields}
        updated = obj.with_fields(**allowed, modified_at=self._next_marker())
        self._objects[object_id] = updated
        self.commits.append(CommitRecord(object_id, user_id, dict(allowed), keep_locked))
        if not keep_locked and self._locks.get(object_id) == user_id:
            self._set_lock(object_id, None)
        return self._objects[object_id]

    def create(self, obj: ShapeBase, user_id: str) -> ShapeBase:
        if obj.id in self._objects:
            raise CommitFailed(obj.id, ValueError("object already exists"))
        z_index = obj.z_index
        if not z_index:
            z_index = max((item.z_index for item in self._objects.values()), default=0) + 1
        created = obj.with_fields(
            created_by=obj.created_by or user_id,
            locked_by=None,
            z_index=z_index,
            modified_at=self._next_marker(),
        )
        self._objects[created.id] = created
        return created

    def delete(self, object_id: str, user_id: str) -> None:
        self._require(object_id)
        self._check_holder(object_id, user_id)
        self._objects.pop(object_id, None)
        self._locks.pop(object_id, None)
        for previews in self._ephemeral.values():
            previews.pop(object_id, None)

    # Ephemeral channel --------------------------------------------------------
    def broadcast(
        self, canvas_id: str, object_id: str, user_id: str, fields: Mapping[str, Any]
    ) -> None:
        payload = dict(fields)
        self._ephemeral.setdefault(canvas_id, {})[object_id] = payload
        self.broadcasts.append(BroadcastRecord(canvas_id, object_id, user_id, payload))

    def clear_ephemeral(self, canvas_id: str, object_id: str) -> None:
        self._ephemeral.get(canvas_id, {}).pop(object_id, None)

    def stats(self) -> Dict[str, int]:
        return {
            "objects": len(self._objects),
            "locks": len(self._locks),
            "commits": len(self.commits),
            "broadcasts": len(self.broadcasts),
        }


class StoreSession:
    """``CanvasBackend`` implementation for one user of an ``InMemoryCanvasStore``."""

    def __init__(self, store: InMemoryCanvasStore, user_id: str) -> None:
        self.store = store
        self.user_id = user_id

    async def acquire_lock(self, object_id: str) -> None:
        await asyncio.sleep(0)
        self.store.acquire(object_id, self.user_id)

    async def release_lock(self, object_id: str) -> None:
        await asyncio.sleep(0)
        self.store.release(object_id, self.user_id)

    async def commit_authoritative(
        self, object_id: str, fields: Mapping[str, Any], keep_locked: bool
    ) -> None:
        await asyncio.sleep(0)
        self.store.commit(object_id, self.user_id, fields, keep_locked=keep_locked)

    async def clear_ephemeral(self, canvas_id: str, object_id: str) -> None:
        await asyncio.sleep(0)
        self.store.clear_ephemeral(canvas_id, object_id)

    async def create_object(self, obj: ShapeBase) -> ShapeBase:
        await asyncio.sleep(0)
        return self.store.create(obj, self.user_id)

    async def delete_object(self, object_id: str) -> None:
        await asyncio.sleep(0)
        self.store.delete(object_id, self.user_id)

    def broadcast_ephemeral(
        self, canvas_id: str, object_id: str, fields: Mapping[str, Any]
    ) -> None:
        self.store.broadcast(canvas_id, object_id, self.user_id, fields)

    def find_object_at(self, point: Point) -> Optional[ShapeBase]:
        return self.store.find_at(point)

    def list_objects(self) -> List[ShapeBase]:
        return self.store.objects()

    def get_object(self, object_id: str) -> Optional[ShapeBase]:
        return self.store.get(object_id)

    def locks(self) -> Tuple[str, ...]:
        return tuple(
            object_id
            for object_id in (obj.id for obj in self.store.objects())
            if self.store.holder(object_id) == self.user_id
        )


__all__ = ["BroadcastRecord", "CommitRecord", "InMemoryCanvasStore", "StoreSession"]
