from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from collabcanvas import CanvasEditor, EditorSettings, InMemoryCanvasStore, StoreSession, ToolKind  # noqa: E402


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class GatedSession(StoreSession):
    """Store session whose acquire calls wait until ``gate`` is set."""

    def __init__(self, store: InMemoryCanvasStore, user_id: str) -> None:
        super().__init__(store, user_id)
        self.gate: Optional[asyncio.Event] = None
        self.acquire_calls: List[str] = []

    def hold(self) -> asyncio.Event:
        self.gate = asyncio.Event()
        return self.gate

    async def acquire_lock(self, object_id: str) -> None:
        self.acquire_calls.append(object_id)
        if self.gate is not None:
            await self.gate.wait()
        await super().acquire_lock(object_id)


class FlakySession(StoreSession):
    """Store session that can be told to fail individual calls like a bad network."""

    def __init__(self, store: InMemoryCanvasStore, user_id: str) -> None:
        super().__init__(store, user_id)
        self.fail_commits = False
        self.fail_releases = False
        self.fail_broadcasts = False

    async def commit_authoritative(
        self, object_id: str, fields: Mapping[str, Any], keep_locked: bool
    ) -> None:
        if self.fail_commits:
            raise TimeoutError("store did not answer")
        await super().commit_authoritative(object_id, fields, keep_locked)

    async def release_lock(self, object_id: str) -> None:
        if self.fail_releases:
            raise ConnectionError("connection reset")
        await super().release_lock(object_id)

    def broadcast_ephemeral(self, canvas_id: str, object_id: str, fields: Mapping[str, Any]) -> None:
        if self.fail_broadcasts:
            raise ConnectionError("channel closed")
        super().broadcast_ephemeral(canvas_id, object_id, fields)


async def wait_for(predicate, attempts: int = 50) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest.fixture
def settings() -> EditorSettings:
    return EditorSettings()


@pytest.fixture
def store(settings: EditorSettings) -> InMemoryCanvasStore:
    return InMemoryCanvasStore(settings=settings)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def seed(store: InMemoryCanvasStore):
    def _seed(**payload: Any):
        return store.put(payload)

    return _seed


@pytest.fixture
def make_editor(store: InMemoryCanvasStore, settings: EditorSettings, clock: FakeClock):
    def _make(
        user_id: str = "alice",
        *,
        session_cls=StoreSession,
        tool: ToolKind = ToolKind.SELECT,
        notify=None,
    ) -> CanvasEditor:
        session = session_cls(store, user_id)
        return CanvasEditor(
            session,
            "canvas-1",
            settings=settings,
            tool=tool,
            clock=clock,
            notify=notify,
        )

    return _make


@pytest.fixture
def rect_payload() -> Dict[str, Any]:
    return {"id": "r1", "type": "rectangle", "x": 100, "y": 100, "width": 100, "height": 100}


@pytest.fixture
def wait():
    return wait_for


@pytest.fixture
def gated_cls():
    return GatedSession


@pytest.fixture
def flaky_cls():
    return FlakySession
