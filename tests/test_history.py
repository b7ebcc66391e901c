from __future__ import annotations

import asyncio

import pytest

from collabcanvas import ToolKind
from collabcanvas.errors import HistoryConflict, LockDenied, StaleReference
from collabcanvas.geometry import Rectangle
from collabcanvas.history import (
    ActionHistory,
    ActionType,
    Direction,
    check_replayable,
    describe,
)


def _geometry(obj):
    return (obj.x, obj.y, obj.width, obj.height)


def test_history_keeps_newest_five() -> None:
    history = ActionHistory(limit=5)
    for index in range(7):
        history.record(ActionType.MOVE, f"r{index}", {"x": 0}, {"x": index})

    entries = history.entries()
    assert len(entries) == 5
    assert [entry.object_id for entry in entries] == ["r6", "r5", "r4", "r3", "r2"]
    assert not history.can_redo


@pytest.mark.parametrize(
    "action, before, after, expected",
    [
        (ActionType.RESIZE, {"width": 1}, {"width": 2}, "Resize Rectangle"),
        (ActionType.CREATE, None, {"id": "r"}, "Create Rectangle"),
        (ActionType.UPDATE_PROPERTIES, {"fill": "#000"}, {"fill": "#fff"}, "Change Rectangle Color"),
        (ActionType.UPDATE_PROPERTIES, {"z_index": 1}, {"z_index": 3}, "Change Rectangle Layer"),
        (ActionType.UPDATE_PROPERTIES, {"bold": False}, {"bold": True}, "Edit Rectangle"),
        (ActionType.UPDATE_PROPERTIES, {"num_points": 5}, {"num_points": 6}, "Update Rectangle Properties"),
    ],
)
def test_descriptions(action, before, after, expected) -> None:
    assert describe(action, "rectangle", before, after) == expected


def test_snapshots_are_read_only() -> None:
    history = ActionHistory()
    before = {"x": 1}
    entry = history.record(ActionType.MOVE, "r1", before, {"x": 2})

    before["x"] = 99
    assert entry.before["x"] == 1
    with pytest.raises(TypeError):
        entry.after["x"] = 3
    assert entry.as_dict()["after"] == {"x": 2}


def test_check_replayable_rules() -> None:
    rect = Rectangle(id="r1", x=0, y=0, width=1, height=1)
    history = ActionHistory()
    deleted = history.record(ActionType.DELETE, "r1", rect.as_dict(), None)
    moved = history.record(ActionType.MOVE, "r1", {"x": 0}, {"x": 5})

    with pytest.raises(HistoryConflict):
        check_replayable(deleted, rect, Direction.UNDO, "alice")
    with pytest.raises(StaleReference):
        check_replayable(moved, None, Direction.UNDO, "alice")
    with pytest.raises(LockDenied):
        check_replayable(moved, rect.with_fields(locked_by="bob"), Direction.UNDO, "alice")
    check_replayable(moved, rect.with_fields(locked_by="alice"), Direction.REDO, "alice")


async def _resize(editor) -> None:
    await editor.pointer_down((101, 101))
    await editor.pointer_move((91, 91))
    await editor.pointer_up((91, 91))


def test_undo_and_redo_resize(make_editor, seed, store, rect_payload) -> None:
    seed(**rect_payload)

    async def scenario() -> None:
        editor = make_editor(tool=ToolKind.RESIZE)
        await _resize(editor)

        undone = await editor.undo()
        assert undone.description == "Resize Rectangle"
        assert _geometry(store.get("r1")) == (100, 100, 100, 100)
        assert editor.history.redo_description == "Redo: Resize Rectangle"
        # Still selected, so the lock is kept.
        assert store.holder("r1") == "alice"

        await editor.redo()
        assert _geometry(store.get("r1")) == (90, 90, 110, 110)
        assert editor.history.can_undo
        assert not editor.history.can_redo

    asyncio.run(scenario())


def test_undo_of_unselected_object_releases_afterwards(make_editor, seed, store, rect_payload) -> None:
    seed(**rect_payload)

    async def scenario() -> None:
        editor = make_editor(tool=ToolKind.RESIZE)
        await _resize(editor)
        await editor.switch_tool(ToolKind.SELECT)
        await editor.pointer_down((1000, 1000))
        await editor.pointer_up((1000, 1000))
        await editor.settle()
        assert store.holder("r1") is None

        await editor.undo()

        assert _geometry(store.get("r1")) == (100, 100, 100, 100)
        assert store.holder("r1") is None

    asyncio.run(scenario())


def test_undo_blocked_by_other_users_lock(make_editor, seed, store, rect_payload) -> None:
    seed(**rect_payload)

    async def scenario() -> None:
        editor = make_editor(tool=ToolKind.RESIZE)
        await _resize(editor)
        await editor.switch_tool(ToolKind.SELECT)
        await editor.pointer_down((1000, 1000))
        await editor.pointer_up((1000, 1000))
        await editor.settle()
        store.acquire("r1", "bob")

        assert await editor.undo() is None

        assert editor.notices[-1].kind == "lock_denied"
        assert editor.history.can_undo
        assert _geometry(store.get("r1")) == (90, 90, 110, 110)

    asyncio.run(scenario())


def test_undo_and_redo_creation(make_editor, store) -> None:
    async def scenario() -> None:
        editor = make_editor(tool=ToolKind.RECTANGLE)
        await editor.pointer_down((10, 10))
        await editor.pointer_up((60, 40))
        [created] = store.objects()

        await editor.undo()
        assert store.objects() == []

        await editor.redo()
        restored = store.get(created.id)
        assert restored is not None
        assert _geometry(restored) == (10, 10, 50, 30)

    asyncio.run(scenario())


def test_recording_clears_redo(make_editor, seed, store, rect_payload) -> None:
    seed(**rect_payload)

    async def scenario() -> None:
        editor = make_editor(tool=ToolKind.RESIZE)
        await _resize(editor)
        await editor.undo()
        assert editor.history.can_redo

        await _resize(editor)
        assert not editor.history.can_redo

    asyncio.run(scenario())
