"""
Contract for the persistence/transport collaborator the editing core talks to.

Implementations signal a lock held by someone else by raising ``LockDenied`` and
a missing object by raising ``StaleReference``. Any other exception is treated
as a transport failure by the callers.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Protocol, runtime_checkable

from ..geometry import Point, ShapeBase


@runtime_checkable
class CanvasBackend(Protocol):
    """One client's view of a shared canvas."""

    user_id: str

    async def acquire_lock(self, object_id: str) -> None:
        ...

    async def release_lock(self, object_id: str) -> None:
        ...

    async def commit_authoritative(
        self, object_id: str, fields: Mapping[str, Any], keep_locked: bool
    ) -> None:
        ...

    async def clear_ephemeral(self, canvas_id: str, object_id: str) -> None:
        ...

    async def create_object(self, obj: ShapeBase) -> ShapeBase:
        ...

    async def delete_object(self, object_id: str) -> None:
        ...

    def broadcast_ephemeral(
        self, canvas_id: str, object_id: str, fields: Mapping[str, Any]
    ) -> None:
        ...

    def find_object_at(self, point: Point) -> Optional[ShapeBase]:
        ...

    def list_objects(self) -> List[ShapeBase]:
        ...

    def get_object(self, object_id: str) -> Optional[ShapeBase]:
        ...


__all__ = ["CanvasBackend"]
