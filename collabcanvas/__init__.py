"""
Collaborative object-editing core for a shared vector canvas.

``CanvasEditor`` is the entry point: it wires the ownership protocol, the
selection engine, the resize engine, the optimistic sync layer and the undo
history around a ``CanvasBackend`` supplied by the host application.
"""

from __future__ import annotations

from .collab import CanvasBackend, InMemoryCanvasStore, StoreSession
from .config import EditorSettings, load_settings
from .editor import CanvasEditor
from .errors import (
    CanvasCoreError,
    CommitFailed,
    HistoryConflict,
    LockDenied,
    Notice,
    StaleReference,
    ValidationError,
)
from .geometry import (
    Bounds,
    Circle,
    Handle,
    Point,
    Rectangle,
    ShapeBase,
    ShapeType,
    Star,
    Text,
    bounds,
    closest_corner,
    parse_object,
)
from .tools import ToolKind

__all__ = [
    "Bounds",
    "CanvasBackend",
    "CanvasCoreError",
    "CanvasEditor",
    "Circle",
    "CommitFailed",
    "EditorSettings",
    "Handle",
    "HistoryConflict",
    "InMemoryCanvasStore",
    "LockDenied",
    "Notice",
    "Point",
    "Rectangle",
    "ShapeBase",
    "ShapeType",
    "StaleReference",
    "Star",
    "StoreSession",
    "Text",
    "ToolKind",
    "ValidationError",
    "bounds",
    "closest_corner",
    "load_settings",
    "parse_object",
]
