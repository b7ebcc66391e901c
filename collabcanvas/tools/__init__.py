"""
Interaction tools and the closed registry the editor dispatches through.

Every ``ToolKind`` member must map to a factory; the module refuses to import
otherwise so a new kind cannot be added without its handler.
"""

from __future__ import annotations

from enum import Enum
from functools import partial
from typing import Callable, Dict

from ..geometry import ShapeType
from .base import BaseTool, PointerEvent, TextEditSession, ToolContext
from .delete import DeleteTool
from .move import MoveTool
from .resize import ResizeTool
from .rotate import RotateTool
from .select import SelectTool
from .shapes import ShapeTool
from .text import TextTool


class ToolKind(str, Enum):
    SELECT = "select"
    RESIZE = "resize"
    MOVE = "move"
    ROTATE = "rotate"
    DELETE = "delete"
    TEXT = "text"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    STAR = "star"


ToolFactory = Callable[[ToolContext], BaseTool]

TOOL_FACTORIES: Dict[ToolKind, ToolFactory] = {
    ToolKind.SELECT: SelectTool,
    ToolKind.RESIZE: ResizeTool,
    ToolKind.MOVE: MoveTool,
    ToolKind.ROTATE: RotateTool,
    ToolKind.DELETE: DeleteTool,
    ToolKind.TEXT: TextTool,
    ToolKind.RECTANGLE: partial(ShapeTool, shape_type=ShapeType.RECTANGLE),
    ToolKind.CIRCLE: partial(ShapeTool, shape_type=ShapeType.CIRCLE),
    ToolKind.STAR: partial(ShapeTool, shape_type=ShapeType.STAR),
}

_MISSING = [kind.value for kind in ToolKind if kind not in TOOL_FACTORIES]
if _MISSING:
    raise RuntimeError(f"tool kinds without a factory: {', '.join(_MISSING)}")


def create_tool(kind: ToolKind | str, context: ToolContext) -> BaseTool:
    return TOOL_FACTORIES[ToolKind(kind)](context)


__all__ = [
    "BaseTool",
    "DeleteTool",
    "MoveTool",
    "PointerEvent",
    "ResizeTool",
    "RotateTool",
    "SelectTool",
    "ShapeTool",
    "TOOL_FACTORIES",
    "TextEditSession",
    "TextTool",
    "ToolContext",
    "ToolKind",
    "create_tool",
]
