from __future__ import annotations

import asyncio

from collabcanvas.selection import SelectionMode


async def _click(editor, point, **kwargs) -> None:
    await editor.pointer_down(point, **kwargs)
    await editor.pointer_up(point, **kwargs)


def test_click_selects_and_locks(make_editor, seed, store, rect_payload) -> None:
    seed(**rect_payload)
    seed(**dict(rect_payload, id="r2", x=300))

    async def scenario() -> None:
        editor = make_editor()

        await _click(editor, (150, 150))
        # The selection is visible before the lock resolved.
        assert editor.selected_ids == ("r1",)
        await editor.settle()
        assert store.holder("r1") == "alice"
        assert editor.selection_mode is SelectionMode.SINGLE

        await _click(editor, (350, 150))
        await editor.settle()
        assert editor.selected_ids == ("r2",)
        assert store.holder("r1") is None
        assert store.holder("r2") == "alice"

    asyncio.run(scenario())


def test_shift_click_toggles_membership(make_editor, seed, store, rect_payload) -> None:
    seed(**rect_payload)
    seed(**dict(rect_payload, id="r2", x=300))

    async def scenario() -> None:
        editor = make_editor()

        await _click(editor, (150, 150))
        await _click(editor, (350, 150), shift=True)
        await editor.settle()
        assert editor.selected_ids == ("r1", "r2")
        assert editor.selection_mode is SelectionMode.MULTI

        await _click(editor, (150, 150), shift=True)
        await editor.settle()
        assert editor.selected_ids == ("r2",)
        assert store.holder("r1") is None
        assert store.holder("r2") == "alice"

    asyncio.run(scenario())


def test_click_on_empty_canvas_clears(make_editor, seed, store, rect_payload) -> None:
    seed(**rect_payload)

    async def scenario() -> None:
        editor = make_editor()
        await _click(editor, (150, 150))
        await editor.settle()

        await _click(editor, (1000, 1000))
        await editor.settle()

        assert editor.selected_ids == ()
        assert editor.selection_mode is SelectionMode.NONE
        assert store.holder("r1") is None

    asyncio.run(scenario())


def test_object_locked_by_other_user_is_refused(make_editor, seed, rect_payload) -> None:
    seed(**dict(rect_payload, lockedBy="bob"))
    seen = []

    async def scenario() -> None:
        editor = make_editor(notify=seen.append)

        await _click(editor, (150, 150))
        await editor.settle()

        assert editor.selected_ids == ()
        assert [notice.kind for notice in seen] == ["lock_denied"]
        assert seen[0].details == {"holder": "bob"}

    asyncio.run(scenario())


def test_lost_lock_race_rolls_back_selection(make_editor, seed, store, rect_payload, gated_cls) -> None:
    seed(**rect_payload)

    async def scenario() -> None:
        editor = make_editor(session_cls=gated_cls)
        gate = editor.backend.hold()

        await _click(editor, (150, 150))
        assert editor.selected_ids == ("r1",)

        # Another client wins the lock while ours is still in flight.
        store.acquire("r1", "bob")
        gate.set()
        await editor.settle()

        assert editor.selected_ids == ()
        assert editor.notices[-1].kind == "lock_denied"
        assert editor.notices[-1].object_id == "r1"
        assert store.holder("r1") == "bob"

    asyncio.run(scenario())


def test_drag_rectangle_selects_fully_contained_objects(make_editor, seed, store) -> None:
    seed(id="inside", type="rectangle", x=20, y=20, width=30, height=30)
    seed(id="edge", type="rectangle", x=90, y=90, width=40, height=40)
    seed(id="theirs", type="rectangle", x=60, y=20, width=10, height=10, lockedBy="bob")

    async def scenario() -> None:
        editor = make_editor()

        await editor.pointer_down((10, 10))
        await editor.pointer_move((100, 100))
        assert editor.drag_rectangle.width == 90
        await editor.pointer_up((100, 100))
        await editor.settle()

        assert editor.selected_ids == ("inside",)
        assert editor.drag_rectangle is None
        assert store.holder("inside") == "alice"
        assert store.holder("edge") is None

    asyncio.run(scenario())


def test_drag_below_threshold_is_ignored(make_editor, seed, store, rect_payload) -> None:
    seed(id="dot", type="rectangle", x=20, y=20, width=2, height=2)
    seed(**rect_payload)

    async def scenario() -> None:
        editor = make_editor()
        await _click(editor, (150, 150))
        await editor.settle()

        await editor.pointer_down((18, 18), shift=True)
        await editor.pointer_move((23, 60), shift=True)
        await editor.pointer_up((23, 60), shift=True)
        await editor.settle()

        assert editor.selected_ids == ("r1",)
        assert store.holder("dot") is None

    asyncio.run(scenario())


def test_double_click_on_text_enters_edit_mode(make_editor, seed) -> None:
    seed(id="t1", type="text", x=100, y=100, width=200, text="hello")

    async def scenario() -> None:
        editor = make_editor()

        await _click(editor, (150, 110), timestamp=1.0)
        await _click(editor, (150, 110), timestamp=1.25)

        assert editor.text_edit is not None
        assert editor.text_edit.object_id == "t1"
        assert editor.text_edit.original == "hello"

    asyncio.run(scenario())


def test_slow_second_click_is_not_a_double_click(make_editor, seed) -> None:
    seed(id="t1", type="text", x=100, y=100, width=200, text="hello")

    async def scenario() -> None:
        editor = make_editor()

        await _click(editor, (150, 110), timestamp=1.0)
        await _click(editor, (150, 110), timestamp=1.35)
        await editor.settle()

        assert editor.text_edit is None
        assert editor.selected_ids == ("t1",)

    asyncio.run(scenario())
