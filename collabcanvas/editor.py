from __future__ import annotations

"""
Editor facade: owns one client's core state, routes pointer events to the
active tool and turns recoverable failures into notices.

The surrounding application drives it with ``pointer_down``/``pointer_move``/
``pointer_up`` and ``switch_tool``, and reads ``selected_ids``,
``cursor_hint()`` and ``render_objects()`` back for drawing.
"""

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from .collab.backend import CanvasBackend
from .collab.ownership import LockStatus, OwnershipManager
from .collab.sync import Clock, SyncLayer
from .collab.tasks import TaskTracker
from .config import EditorSettings, load_settings
from .errors import CanvasCoreError, CommitFailed, LockDenied, Notice, StaleReference
from .geometry import Bounds, BoundsCache, Point, ShapeBase, Text, clamp_text_to_canvas, parse_object
from .history import ActionHistory, ActionRecord, ActionType, Direction
from .obs import get_logger
from .resize import ResizeEngine
from .selection import SelectionEngine, SelectionMode
from .tools import BaseTool, PointerEvent, TextEditSession, ToolContext, ToolKind, create_tool

LOGGER = logging.getLogger(__name__)

NotifyCallback = Callable[[Notice], None]


class CanvasEditor:
    def __init__(
        self,
        backend: CanvasBackend,
        canvas_id: str,
        *,
        user_id: Optional[str] = None,
        settings: Optional[EditorSettings] = None,
        notify: Optional[NotifyCallback] = None,
        tool: ToolKind | str = ToolKind.SELECT,
        clock: Optional[Clock] = None,
    ) -> None:
        self.backend = backend
        self.canvas_id = canvas_id
        self.user_id = user_id or backend.user_id
        self.settings = settings or load_settings()
        self._notify_callback = notify
        self.notices: List[Notice] = []

        self.tracker = TaskTracker()
        self.log = get_logger(__name__, canvas_id=canvas_id, user_id=self.user_id)
        self.ownership = OwnershipManager(backend, self.user_id, tracker=self.tracker)
        self.selection = SelectionEngine(
            self.ownership,
            settings=self.settings,
            tracker=self.tracker,
            notify=self._notify,
            bounds_cache=BoundsCache(self.settings),
            log=self.log,
        )
        sync_kwargs = {"clock": clock} if clock is not None else {}
        self.sync = SyncLayer(
            backend,
            canvas_id,
            self.ownership,
            settings=self.settings,
            tracker=self.tracker,
            **sync_kwargs,
        )
        self.history = ActionHistory(self.settings.history_limit)
        self.context = ToolContext(
            backend=backend,
            canvas_id=canvas_id,
            user_id=self.user_id,
            settings=self.settings,
            ownership=self.ownership,
            selection=self.selection,
            sync=self.sync,
            history=self.history,
            resize=ResizeEngine(self.settings),
            tracker=self.tracker,
            notify=self._notify,
            log=self.log,
        )
        self._kind = ToolKind(tool)
        self._tool: BaseTool = create_tool(self._kind, self.context)

    # Exposure to the UI ----------------------------------------------------------
    @property
    def tool_kind(self) -> ToolKind:
        return self._kind

    @property
    def tool(self) -> BaseTool:
        return self._tool

    @property
    def selected_ids(self) -> Tuple[str, ...]:
        return self.selection.selected_ids

    @property
    def selection_mode(self) -> SelectionMode:
        return self.selection.mode

    @property
    def drag_rectangle(self) -> Optional[Bounds]:
        drag = self.selection.drag
        return drag.rect if drag is not None else None

    @property
    def draft(self) -> Optional[ShapeBase]:
        return self.context.draft

    @property
    def text_edit(self) -> Optional[TextEditSession]:
        return self.context.text_edit

    def cursor_hint(self) -> str:
        return self._tool.cursor_hint()

    def render_objects(self) -> List[ShapeBase]:
        """Authoritative objects with local overrides applied, plus any creation draft."""
        objects = self.sync.render()
        if self.context.draft is not None:
            objects.append(self.context.draft)
        return objects

    # Notices ------------------------------------------------------------------------
    def _notify(self, notice: Notice) -> None:
        self.notices.append(notice)
        if self._notify_callback is not None:
            self._notify_callback(notice)

    async def _recover(self, exc: CanvasCoreError) -> None:
        interrupted = self._tool.cancel()
        if isinstance(exc, StaleReference):
            if exc.object_id:
                self.selection.discard(exc.object_id)
            self.selection.clear()
        elif isinstance(exc, (LockDenied, CommitFailed)) and exc.object_id in self.selection.selected_ids:
            self.selection.discard(exc.object_id)
        elif interrupted:
            self.selection.deselect(interrupted)
        self.log.warning(
            "gesture.failed",
            extra={"kind": exc.kind, "object_id": exc.object_id, "error": str(exc)},
        )
        self._notify(Notice.from_error(exc))

    async def _guard(self, action: Awaitable[Any]) -> Any:
        try:
            return await action
        except CanvasCoreError as exc:
            await self._recover(exc)
            return None

    # Event dispatch -----------------------------------------------------------------
    def _event(self, point: Any, timestamp: Optional[float], shift: bool) -> PointerEvent:
        point = Point.coerce(point)
        if timestamp is None:
            return PointerEvent(point=point, shift=shift)
        return PointerEvent(point=point, timestamp=timestamp, shift=shift)

    async def pointer_down(self, point: Any, *, timestamp: Optional[float] = None, shift: bool = False) -> None:
        await self._guard(self._tool.on_pointer_down(self._event(point, timestamp, shift)))

    async def pointer_move(self, point: Any, *, timestamp: Optional[float] = None, shift: bool = False) -> None:
        if self._tool.busy:
            LOGGER.debug("Ignoring move while %s waits for a lock", self._tool.name)
            return
        await self._guard(self._tool.on_pointer_move(self._event(point, timestamp, shift)))

    async def pointer_up(self, point: Any, *, timestamp: Optional[float] = None, shift: bool = False) -> None:
        if self._tool.busy:
            self._tool.release_early()
            return
        await self._guard(self._tool.on_pointer_up(self._event(point, timestamp, shift)))

    async def switch_tool(self, kind: ToolKind | str) -> None:
        """
        Activate another tool.

        The outgoing tool's session state is dropped before the new tool is
        installed; locks taken for an interrupted gesture are released before
        this returns. An object whose acquire is still in flight leaves the
        selection at once and its lock is given back once the acquire resolves.
        """
        kind = ToolKind(kind)
        if kind is self._kind:
            return
        pending = self._tool.pending_target
        interrupted = self._tool.deactivate()
        if pending is not None and pending not in interrupted:
            self.selection.deselect([pending])
        self.selection.cancel_drag()
        self.context.draft = None
        self.context.text_edit = None
        previous, self._kind = self._kind, kind
        self._tool = create_tool(kind, self.context)
        self.log.info("tool.switch", extra={"from": previous, "to": kind})
        if interrupted:
            await asyncio.gather(*self.selection.deselect(interrupted))

    # Text editing -------------------------------------------------------------------
    async def finish_text_edit(self, content: str, **properties: Any) -> Optional[ShapeBase]:
        session, self.context.text_edit = self.context.text_edit, None
        if session is None:
            return None
        return await self._guard(self._finish_text(session, content, properties))

    async def _finish_text(
        self, session: TextEditSession, content: str, properties: dict
    ) -> Optional[ShapeBase]:
        if session.object_id is None:
            if not content.strip():
                return None
            settings = self.settings
            text = Text(
                id=uuid.uuid4().hex,
                x=session.point.x,
                y=session.point.y,
                width=properties.pop("width", settings.text_default_width),
                text=content,
                font_size=properties.pop("font_size", settings.text_default_font_size),
                fill=properties.pop("fill", settings.default_fill),
                created_by=self.user_id,
                **properties,
            )
            text = clamp_text_to_canvas(text, settings)
            try:
                created = await self.backend.create_object(text)
            except CanvasCoreError:
                raise
            except Exception as exc:
                raise CommitFailed(text.id, exc) from exc
            self.context.record(ActionType.CREATE, created, None, created.as_dict())
            return created

        current = self.backend.get_object(session.object_id)
        if current is None:
            raise StaleReference(session.object_id)
        changes = dict(properties, text=content)
        before = {key: getattr(current, key) for key in changes if key in type(current).model_fields}
        after = {key: value for key, value in changes.items() if key in before}
        if before == after:
            return current
        if not self.ownership.owns(current.id):
            outcome = await self.ownership.acquire(current.id)
            if not outcome.granted:
                raise LockDenied(current.id, holder=outcome.holder)
        await self.sync.commit_fields(current.id, after, current.shape_type, keep_locked=True)
        self.context.record(ActionType.UPDATE_PROPERTIES, current, before, after)
        return self.backend.get_object(current.id)

    def cancel_text_edit(self) -> None:
        self.context.text_edit = None

    # History ------------------------------------------------------------------------
    async def undo(self) -> Optional[ActionRecord]:
        return await self._guard(
            self.history.undo(self.backend.get_object, self._replay, user_id=self.user_id)
        )

    async def redo(self) -> Optional[ActionRecord]:
        return await self._guard(
            self.history.redo(self.backend.get_object, self._replay, user_id=self.user_id)
        )

    async def _hold(self, object_id: str) -> None:
        """
        Acquire ``object_id`` for a replay.

        A lock taken only for the replay is given back by the replay itself:
        the commit runs with ``keep_locked`` off for unselected objects, and a
        delete drops the lock with the object.
        """
        if self.ownership.owns(object_id):
            return
        outcome = await self.ownership.acquire(object_id)
        if not outcome.granted:
            if outcome.status is LockStatus.STALE:
                raise StaleReference(object_id)
            raise LockDenied(object_id, holder=outcome.holder)

    async def _replay(self, record: ActionRecord, direction: Direction) -> None:
        state = record.state_for(direction)
        recreate = (record.type is ActionType.CREATE and direction is Direction.REDO) or (
            record.type is ActionType.DELETE and direction is Direction.UNDO
        )
        remove = (record.type is ActionType.CREATE and direction is Direction.UNDO) or (
            record.type is ActionType.DELETE and direction is Direction.REDO
        )
        if recreate:
            obj = parse_object(dict(state or {}))
            try:
                await self.backend.create_object(obj)
            except CanvasCoreError:
                raise
            except Exception as exc:
                raise CommitFailed(obj.id, exc) from exc
            return
        await self._hold(record.object_id)
        if remove:
            self.sync.abandon(record.object_id)
            try:
                await self.backend.delete_object(record.object_id)
            except CanvasCoreError:
                raise
            except Exception as exc:
                raise CommitFailed(record.object_id, exc) from exc
            self.selection.discard(record.object_id)
            return
        current = self.backend.get_object(record.object_id)
        if current is None:
            raise StaleReference(record.object_id)
        keep = self.selection.is_selected(record.object_id)
        await self.sync.commit_fields(
            record.object_id, dict(state or {}), current.shape_type, keep_locked=keep
        )

    # Remote changes -----------------------------------------------------------------
    async def reconcile(self) -> List[Notice]:
        """
        Re-check the selection against the authoritative snapshot.

        Selected objects that vanished or are now locked by someone else are
        dropped, and any session on them is abandoned without a commit.
        """
        raised: List[Notice] = []
        for object_id in list(self.selection.selected_ids):
            current = self.backend.get_object(object_id)
            if current is None:
                error: CanvasCoreError = StaleReference(object_id)
            elif not self.ownership.can_edit(current):
                error = LockDenied(object_id, holder=current.locked_by)
            else:
                continue
            interrupted = self._tool.cancel()
            for other in interrupted:
                if other != object_id:
                    self.sync.abandon(other)
            self.sync.abandon(object_id)
            self.selection.discard(object_id)
            if isinstance(error, StaleReference):
                self.selection.clear()
            notice = Notice.from_error(error)
            self._notify(notice)
            raised.append(notice)
        return raised

    # Lifecycle ----------------------------------------------------------------------
    async def settle(self) -> None:
        """Wait for every background lock/cleanup task to finish."""
        await self.tracker.drain()

    async def close(self) -> None:
        self._tool.deactivate()
        self.context.draft = None
        self.context.text_edit = None
        await asyncio.gather(*self.selection.clear())
        await self.settle()


__all__ = ["CanvasEditor"]
