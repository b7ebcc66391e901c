from __future__ import annotations

"""
Per-object edit rights for one client.

An object counts as editable only after this client's own acquire resolved
successfully. At most one acquire per object is in flight; a second attempt
while one is pending is rejected rather than queued. Releases always succeed
locally and are best-effort remotely.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Set

from ..errors import LockDenied, StaleReference
from ..geometry import ShapeBase
from .backend import CanvasBackend
from .tasks import TaskTracker

LOGGER = logging.getLogger(__name__)


class LockStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    STALE = "stale"
    PENDING = "pending"


class ReleaseStatus(str, Enum):
    RELEASED = "released"
    BEST_EFFORT = "best_effort"


@dataclass(frozen=True)
class LockOutcome:
    object_id: str
    status: LockStatus
    holder: Optional[str] = None
    error: Optional[str] = None

    @property
    def granted(self) -> bool:
        return self.status is LockStatus.GRANTED


class OwnershipManager:
    def __init__(
        self,
        backend: CanvasBackend,
        user_id: str,
        *,
        tracker: Optional[TaskTracker] = None,
    ) -> None:
        self._backend = backend
        self.user_id = user_id
        self._tracker = tracker or TaskTracker()
        self._held: Set[str] = set()
        self._pending: Dict[str, asyncio.Task[LockOutcome]] = {}

    # Queries ------------------------------------------------------------------
    def owns(self, object_id: str) -> bool:
        return object_id in self._held

    def is_pending(self, object_id: str) -> bool:
        return object_id in self._pending

    @property
    def held(self) -> frozenset[str]:
        return frozenset(self._held)

    def can_edit(self, obj: ShapeBase) -> bool:
        """True unless another client currently holds the object's lock."""
        return obj.locked_by in (None, self.user_id)

    # Acquire ------------------------------------------------------------------
    def begin_acquire(self, object_id: str) -> Optional[asyncio.Task[LockOutcome]]:
        """
        Start an acquire in the background and return its task.

        Returns ``None`` when an acquire for the same object is already in
        flight; callers must treat that as a rejected attempt.
        """
        if object_id in self._pending:
            LOGGER.debug("Acquire for %s already pending; rejecting re-entry", object_id)
            return None
        task = self._tracker.spawn(self._acquire(object_id), name=f"acquire:{object_id}")
        self._pending[object_id] = task
        return task

    async def acquire(self, object_id: str) -> LockOutcome:
        if object_id in self._held and object_id not in self._pending:
            return LockOutcome(object_id, LockStatus.GRANTED)
        task = self.begin_acquire(object_id)
        if task is None:
            return LockOutcome(object_id, LockStatus.PENDING, error="acquire already pending")
        return await task

    async def _acquire(self, object_id: str) -> LockOutcome:
        try:
            await self._backend.acquire_lock(object_id)
        except LockDenied as exc:
            LOGGER.info("Lock on %s denied (holder=%s)", object_id, exc.holder)
            return LockOutcome(object_id, LockStatus.DENIED, holder=exc.holder, error=str(exc))
        except StaleReference as exc:
            LOGGER.info("Lock on %s failed: object is gone", object_id)
            return LockOutcome(object_id, LockStatus.STALE, error=str(exc))
        except Exception as exc:
            LOGGER.warning("Lock on %s failed: %s", object_id, exc)
            return LockOutcome(object_id, LockStatus.DENIED, error=str(exc))
        finally:
            self._pending.pop(object_id, None)
        self._held.add(object_id)
        return LockOutcome(object_id, LockStatus.GRANTED)

    async def acquire_many(self, object_ids: Iterable[str]) -> Dict[str, LockOutcome]:
        ids = list(dict.fromkeys(object_ids))
        outcomes = await asyncio.gather(*(self.acquire(object_id) for object_id in ids))
        return dict(zip(ids, outcomes))

    # Release ------------------------------------------------------------------
    async def release(self, object_id: str) -> ReleaseStatus:
        pending = self._pending.get(object_id)
        if pending is not None:
            await asyncio.wait([pending])
        self._held.discard(object_id)
        try:
            await self._backend.release_lock(object_id)
        except Exception as exc:
            LOGGER.warning("Best-effort release of %s failed: %s", object_id, exc)
            return ReleaseStatus.BEST_EFFORT
        return ReleaseStatus.RELEASED

    def begin_release(self, object_id: str) -> asyncio.Task[ReleaseStatus]:
        """Drop the object locally now and finish the remote release in the background."""
        if object_id not in self._pending:
            self._held.discard(object_id)
        return self._tracker.spawn(self.release(object_id), name=f"release:{object_id}")

    async def release_many(self, object_ids: Iterable[str]) -> Dict[str, ReleaseStatus]:
        ids = list(dict.fromkeys(object_ids))
        statuses = await asyncio.gather(*(self.release(object_id) for object_id in ids))
        return dict(zip(ids, statuses))

    def forget(self, object_id: str) -> None:
        """Stop treating an object as held without contacting the backend."""
        self._held.discard(object_id)


__all__ = ["LockOutcome", "LockStatus", "OwnershipManager", "ReleaseStatus"]
