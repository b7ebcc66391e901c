"""
Collaboration plumbing for the editing core.

The backend contract, an in-memory reference store, lock ownership tracking and
the optimistic override / ephemeral broadcast layer live here so every tool
shares one view of who may write what.
"""

from __future__ import annotations

from .backend import CanvasBackend
from .memory import InMemoryCanvasStore, StoreSession
from .ownership import LockOutcome, LockStatus, OwnershipManager, ReleaseStatus
from .sync import BroadcastThrottle, OverrideCache, SyncLayer
from .tasks import TaskTracker

__all__ = [
    "BroadcastThrottle",
    "CanvasBackend",
    "InMemoryCanvasStore",
    "LockOutcome",
    "LockStatus",
    "OverrideCache",
    "OwnershipManager",
    "ReleaseStatus",
    "StoreSession",
    "SyncLayer",
    "TaskTracker",
]
