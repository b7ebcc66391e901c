from __future__ import annotations

"""
Bounded undo/redo log of before/after snapshots.

The history never touches the canvas itself. ``undo``/``redo`` check that the
recorded action still applies, then hand the record to a replay callback that
routes the snapshot through the normal commit path.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from .errors import HistoryConflict, LockDenied, StaleReference
from .geometry import ShapeBase

LOGGER = logging.getLogger(__name__)


class ActionType(str, Enum):
    CREATE = "create"
    DELETE = "delete"
    MOVE = "move"
    RESIZE = "resize"
    ROTATE = "rotate"
    UPDATE_PROPERTIES = "update_properties"


class Direction(str, Enum):
    UNDO = "undo"
    REDO = "redo"


_TEXT_PROPERTIES = frozenset({"text", "bold", "italic", "underline", "font_size", "font_family"})


def describe(action: ActionType, shape_label: str, before: Optional[Mapping[str, Any]], after: Optional[Mapping[str, Any]]) -> str:
    label = (shape_label or "object").capitalize()
    if action is ActionType.UPDATE_PROPERTIES:
        changed = set(before or {}) | set(after or {})
        if "fill" in changed:
            return f"Change {label} Color"
        if "z_index" in changed:
            return f"Change {label} Layer"
        if changed & _TEXT_PROPERTIES:
            return f"Edit {label}"
        return f"Update {label} Properties"
    return f"{action.value.capitalize()} {label}"


def _freeze(snapshot: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    if snapshot is None:
        return None
    return MappingProxyType(dict(snapshot))


@dataclass(frozen=True)
class ActionRecord:
    type: ActionType
    object_id: str
    before: Optional[Mapping[str, Any]]
    after: Optional[Mapping[str, Any]]
    metadata: Mapping[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    description: str = ""
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        object.__setattr__(self, "before", _freeze(self.before))
        object.__setattr__(self, "after", _freeze(self.after))
        object.__setattr__(self, "metadata", _freeze(self.metadata))

    def state_for(self, direction: Direction) -> Optional[Mapping[str, Any]]:
        return self.before if direction is Direction.UNDO else self.after

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "object_id": self.object_id,
            "before": dict(self.before) if self.before is not None else None,
            "after": dict(self.after) if self.after is not None else None,
            "metadata": dict(self.metadata),
            "user_id": self.user_id,
            "description": self.description,
            "timestamp": self.timestamp,
        }


Replayer = Callable[[ActionRecord, Direction], Awaitable[None]]
Lookup = Callable[[str], Optional[ShapeBase]]


def check_replayable(
    record: ActionRecord,
    current: Optional[ShapeBase],
    direction: Direction,
    user_id: str,
) -> None:
    """Raise when ``record`` cannot be replayed against the current object state."""
    verb = direction.value
    wants_absent = (record.type is ActionType.CREATE and direction is Direction.REDO) or (
        record.type is ActionType.DELETE and direction is Direction.UNDO
    )
    if wants_absent:
        if current is not None:
            raise HistoryConflict(f"cannot {verb}: object was recreated", object_id=record.object_id)
        return
    if current is None:
        raise StaleReference(record.object_id)
    if current.locked_by not in (None, user_id):
        raise LockDenied(record.object_id, holder=current.locked_by)


class ActionHistory:
    """Undo/redo stacks, newest entry first, each capped at ``limit``."""

    def __init__(self, limit: int = 5) -> None:
        self.limit = limit
        self._undo: List[ActionRecord] = []
        self._redo: List[ActionRecord] = []

    def record(
        self,
        action: ActionType,
        object_id: str,
        before: Optional[Mapping[str, Any]],
        after: Optional[Mapping[str, Any]],
        *,
        metadata: Optional[Mapping[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> ActionRecord:
        metadata = dict(metadata or {})
        entry = ActionRecord(
            type=action,
            object_id=object_id,
            before=before,
            after=after,
            metadata=metadata,
            user_id=user_id,
            description=describe(action, str(metadata.get("shape_type", "object")), before, after),
        )
        self._undo.insert(0, entry)
        del self._undo[self.limit :]
        self._redo.clear()
        LOGGER.debug("Recorded %s (%s)", entry.description, object_id)
        return entry

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_description(self) -> Optional[str]:
        return f"Undo: {self._undo[0].description}" if self._undo else None

    @property
    def redo_description(self) -> Optional[str]:
        return f"Redo: {self._redo[0].description}" if self._redo else None

    def entries(self) -> List[ActionRecord]:
        return list(self._undo)

    def redo_entries(self) -> List[ActionRecord]:
        return list(self._redo)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    async def _step(
        self,
        direction: Direction,
        lookup: Lookup,
        replay: Replayer,
        user_id: str,
    ) -> Optional[ActionRecord]:
        source, target = (
            (self._undo, self._redo) if direction is Direction.UNDO else (self._redo, self._undo)
        )
        if not source:
            return None
        entry = source[0]
        check_replayable(entry, lookup(entry.object_id), direction, user_id)
        await replay(entry, direction)
        source.pop(0)
        target.insert(0, entry)
        del target[self.limit :]
        LOGGER.info("%s successful: %s", direction.value.capitalize(), entry.description)
        return entry

    async def undo(self, lookup: Lookup, replay: Replayer, *, user_id: str) -> Optional[ActionRecord]:
        return await self._step(Direction.UNDO, lookup, replay, user_id)

    async def redo(self, lookup: Lookup, replay: Replayer, *, user_id: str) -> Optional[ActionRecord]:
        return await self._step(Direction.REDO, lookup, replay, user_id)


__all__ = [
    "ActionHistory",
    "ActionRecord",
    "ActionType",
    "Direction",
    "check_replayable",
    "describe",
]
