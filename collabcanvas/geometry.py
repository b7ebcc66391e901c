from __future__ import annotations

"""
Shape variants and the bounds / hit-test math every other layer builds on.

Objects are frozen pydantic models tagged by ``type``. They are deliberately
permissive on input: a payload with a missing or non-finite size still parses,
so that the validation layer can reject it explicitly instead of the parser
coercing it to something plausible.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, Iterable, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .config import EditorSettings
from .errors import ValidationError

_DEFAULT_SETTINGS = EditorSettings()


class ShapeType(str, Enum):
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    STAR = "star"
    TEXT = "text"


class Handle(str, Enum):
    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float

    @classmethod
    def coerce(cls, value: Any) -> "Point":
        if isinstance(value, Point):
            return value
        if isinstance(value, Mapping):
            return cls(float(value["x"]), float(value["y"]))
        x, y = value
        return cls(float(x), float(y))

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    def distance_to(self, other: "Point") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def as_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True, slots=True)
class Bounds:
    left: float
    right: float
    top: float
    bottom: float

    @classmethod
    def from_corners(cls, a: Point, b: Point) -> "Bounds":
        return cls(
            left=min(a.x, b.x),
            right=max(a.x, b.x),
            top=min(a.y, b.y),
            bottom=max(a.y, b.y),
        )

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center(self) -> Point:
        return Point((self.left + self.right) / 2, (self.top + self.bottom) / 2)

    def contains(self, other: "Bounds") -> bool:
        """True when ``other`` lies entirely inside this box (edges inclusive)."""
        return (
            other.left >= self.left
            and other.right <= self.right
            and other.top >= self.top
            and other.bottom <= self.bottom
        )

    def contains_point(self, point: Point) -> bool:
        return self.left <= point.x <= self.right and self.top <= point.y <= self.bottom

    def corners(self) -> Dict[Handle, Point]:
        return {
            Handle.NW: Point(self.left, self.top),
            Handle.NE: Point(self.right, self.top),
            Handle.SW: Point(self.left, self.bottom),
            Handle.SE: Point(self.right, self.bottom),
        }

    def as_dict(self) -> Dict[str, float]:
        return {
            "left": self.left,
            "right": self.right,
            "top": self.top,
            "bottom": self.bottom,
        }


# Object variants ----------------------------------------------------------------


class ShapeBase(BaseModel):
    """Fields shared by every canvas object."""

    id: str
    x: Optional[float] = None
    y: Optional[float] = None
    created_by: Optional[str] = Field(default=None, alias="createdBy")
    rotation: Optional[float] = 0.0
    locked_by: Optional[str] = Field(default=None, alias="lockedBy")
    modified_at: float = Field(default=0.0, alias="lastModifiedAt")
    fill: Optional[str] = None
    z_index: int = Field(default=0, alias="zIndex")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    # Fields written by a resize / carried by a commit, in commit order.
    GEOMETRY_FIELDS: ClassVar[Tuple[str, ...]] = ("x", "y")
    # Fields that must be strictly positive for the shape to be usable.
    SIZE_FIELDS: ClassVar[Tuple[str, ...]] = ()

    @property
    def shape_type(self) -> ShapeType:
        return ShapeType(getattr(self, "type"))

    @property
    def label(self) -> str:
        return self.shape_type.value.capitalize()

    def with_fields(self, **changes: Any) -> "ShapeBase":
        return self.model_copy(update=changes)

    def geometry(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.GEOMETRY_FIELDS}

    def as_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class Rectangle(ShapeBase):
    type: Literal["rectangle"] = "rectangle"
    width: Optional[float] = None
    height: Optional[float] = None

    GEOMETRY_FIELDS: ClassVar[Tuple[str, ...]] = ("x", "y", "width", "height")
    SIZE_FIELDS: ClassVar[Tuple[str, ...]] = ("width", "height")


class Circle(ShapeBase):
    type: Literal["circle"] = "circle"
    radius: Optional[float] = None

    GEOMETRY_FIELDS: ClassVar[Tuple[str, ...]] = ("x", "y", "radius")
    SIZE_FIELDS: ClassVar[Tuple[str, ...]] = ("radius",)


class Star(ShapeBase):
    type: Literal["star"] = "star"
    inner_radius: Optional[float] = Field(default=None, alias="innerRadius")
    outer_radius: Optional[float] = Field(default=None, alias="outerRadius")
    num_points: int = Field(default=5, alias="numPoints")

    GEOMETRY_FIELDS: ClassVar[Tuple[str, ...]] = ("x", "y", "inner_radius", "outer_radius")
    SIZE_FIELDS: ClassVar[Tuple[str, ...]] = ("inner_radius", "outer_radius")


class Text(ShapeBase):
    type: Literal["text"] = "text"
    width: Optional[float] = None
    text: str = ""
    font_size: Optional[float] = Field(default=None, alias="fontSize")
    font_family: Optional[str] = Field(default=None, alias="fontFamily")
    bold: bool = False
    italic: bool = False
    underline: bool = False

    # Height is derived from wrapped content and never written.
    GEOMETRY_FIELDS: ClassVar[Tuple[str, ...]] = ("x", "y", "width")
    SIZE_FIELDS: ClassVar[Tuple[str, ...]] = ("width",)


CanvasObject = Annotated[
    Union[Rectangle, Circle, Star, Text], Field(discriminator="type")
]

SHAPE_CLASSES: Dict[ShapeType, type[ShapeBase]] = {
    ShapeType.RECTANGLE: Rectangle,
    ShapeType.CIRCLE: Circle,
    ShapeType.STAR: Star,
    ShapeType.TEXT: Text,
}

_OBJECT_ADAPTER: TypeAdapter[Any] = TypeAdapter(CanvasObject)


def parse_object(payload: Mapping[str, Any] | ShapeBase) -> ShapeBase:
    """Build a typed object from a store payload (camelCase or snake_case keys)."""
    if isinstance(payload, ShapeBase):
        return payload
    try:
        return _OBJECT_ADAPTER.validate_python(dict(payload))
    except PydanticValidationError as exc:
        issues = [
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        ]
        object_id = payload.get("id") if isinstance(payload, Mapping) else None
        raise ValidationError(issues, object_id=object_id if isinstance(object_id, str) else None) from exc


# Bounds and hit testing ------------------------------------------------------------


def text_height(text: Text, settings: Optional[EditorSettings] = None) -> Optional[float]:
    """Estimated height of wrapped text content; ``None`` when width is unusable."""
    settings = settings or _DEFAULT_SETTINGS
    font_size = text.font_size if text.font_size is not None else settings.text_default_font_size
    if not is_finite_number(font_size) or font_size <= 0:
        return None
    if not is_finite_number(text.width) or text.width <= 0:
        return None
    char_width = font_size * settings.text_char_width
    chars_per_line = max(1, math.floor(text.width / char_width))
    line_count = max(1, math.ceil(len(text.text or "") / chars_per_line))
    return line_count * font_size * settings.text_line_height


def _has_valid_geometry(obj: ShapeBase) -> bool:
    if not is_finite_number(obj.x) or not is_finite_number(obj.y):
        return False
    for name in obj.SIZE_FIELDS:
        value = getattr(obj, name)
        if not is_finite_number(value) or value <= 0:
            return False
    return True


def bounds(obj: ShapeBase, settings: Optional[EditorSettings] = None) -> Optional[Bounds]:
    """Axis-aligned, unrotated bounds; ``None`` when any required field is invalid."""
    if not _has_valid_geometry(obj):
        return None
    if isinstance(obj, Rectangle):
        return Bounds(obj.x, obj.x + obj.width, obj.y, obj.y + obj.height)
    if isinstance(obj, Circle):
        r = obj.radius
        return Bounds(obj.x - r, obj.x + r, obj.y - r, obj.y + r)
    if isinstance(obj, Star):
        r = obj.outer_radius
        return Bounds(obj.x - r, obj.x + r, obj.y - r, obj.y + r)
    if isinstance(obj, Text):
        height = text_height(obj, settings)
        if height is None:
            return None
        return Bounds(obj.x, obj.x + obj.width, obj.y, obj.y + height)
    return None


def rotate_point(point: Point, center: Point, degrees: float) -> Point:
    """Rigid rotation about ``center``; positive degrees turn clockwise on screen."""
    if not degrees:
        return point
    rad = math.radians(degrees)
    cos_a = math.cos(rad)
    sin_a = math.sin(rad)
    dx = point.x - center.x
    dy = point.y - center.y
    return Point(center.x + dx * cos_a - dy * sin_a, center.y + dx * sin_a + dy * cos_a)


def rotated_corners(
    obj: ShapeBase, settings: Optional[EditorSettings] = None
) -> Optional[Dict[Handle, Point]]:
    box = bounds(obj, settings)
    if box is None:
        return None
    rotation = obj.rotation or 0.0
    if not is_finite_number(rotation):
        return None
    center = box.center
    return {name: rotate_point(corner, center, rotation) for name, corner in box.corners().items()}


def closest_corner(
    point: Point, obj: ShapeBase, settings: Optional[EditorSettings] = None
) -> Optional[Handle]:
    """
    Name of the handle nearest to ``point`` in canvas space.

    Returns ``None`` when the object's geometry is unusable or the point is
    further than ``handle_hit_factor * max(width, height)`` from the center.
    """
    settings = settings or _DEFAULT_SETTINGS
    if not point.is_finite:
        return None
    box = bounds(obj, settings)
    corners = rotated_corners(obj, settings)
    if box is None or corners is None:
        return None
    reach = settings.handle_hit_factor * max(box.width, box.height)
    if box.center.distance_to(point) > reach:
        return None
    return min(corners, key=lambda name: corners[name].distance_to(point))


def contains_point(
    obj: ShapeBase, point: Point, settings: Optional[EditorSettings] = None
) -> bool:
    box = bounds(obj, settings)
    if box is None or not point.is_finite:
        return False
    if isinstance(obj, (Circle, Star)):
        radius = obj.radius if isinstance(obj, Circle) else obj.outer_radius
        return Point(obj.x, obj.y).distance_to(point) <= radius
    rotation = obj.rotation or 0.0
    if not is_finite_number(rotation):
        return False
    local = rotate_point(point, box.center, -rotation)
    return box.contains_point(local)


def topmost_at(
    objects: Iterable[ShapeBase], point: Point, settings: Optional[EditorSettings] = None
) -> Optional[ShapeBase]:
    """Highest ``z_index`` hit, later entries winning ties."""
    best: Optional[ShapeBase] = None
    for obj in objects:
        if not contains_point(obj, point, settings):
            continue
        if best is None or obj.z_index >= best.z_index:
            best = obj
    return best


# Canvas clamps --------------------------------------------------------------------


def clamp_rect_to_canvas(rect: Rectangle, settings: Optional[EditorSettings] = None) -> Rectangle:
    """Shift (and if necessary shrink) a rectangle so it lies on the canvas."""
    settings = settings or _DEFAULT_SETTINGS
    width = min(rect.width, settings.canvas_width)
    height = min(rect.height, settings.canvas_height)
    x = max(0.0, min(rect.x, settings.canvas_width - width))
    y = max(0.0, min(rect.y, settings.canvas_height - height))
    return rect.with_fields(x=x, y=y, width=width, height=height)


def fit_rect_to_canvas(rect: Rectangle, settings: Optional[EditorSettings] = None) -> Rectangle:
    """Crop a rectangle at the canvas edges, keeping its opposite edges fixed."""
    settings = settings or _DEFAULT_SETTINGS
    left = max(0.0, rect.x)
    top = max(0.0, rect.y)
    right = min(settings.canvas_width, rect.x + rect.width)
    bottom = min(settings.canvas_height, rect.y + rect.height)
    width = max(right - left, settings.rect_min_size)
    height = max(bottom - top, settings.rect_min_size)
    cropped = rect.with_fields(x=left, y=top, width=width, height=height)
    return clamp_rect_to_canvas(cropped, settings)


def _clamp_center(obj: ShapeBase, radius: float, settings: EditorSettings) -> Tuple[float, float, float]:
    radius = min(radius, settings.canvas_width / 2, settings.canvas_height / 2)
    x = max(radius, min(obj.x, settings.canvas_width - radius))
    y = max(radius, min(obj.y, settings.canvas_height - radius))
    return x, y, radius


def clamp_circle_to_canvas(circle: Circle, settings: Optional[EditorSettings] = None) -> Circle:
    settings = settings or _DEFAULT_SETTINGS
    x, y, radius = _clamp_center(circle, circle.radius, settings)
    return circle.with_fields(x=x, y=y, radius=radius)


def clamp_star_to_canvas(star: Star, settings: Optional[EditorSettings] = None) -> Star:
    settings = settings or _DEFAULT_SETTINGS
    x, y, outer = _clamp_center(star, star.outer_radius, settings)
    if outer == star.outer_radius:
        return star.with_fields(x=x, y=y)
    return star.with_fields(x=x, y=y, outer_radius=outer, inner_radius=outer * settings.star_inner_ratio)


def clamp_text_to_canvas(text: Text, settings: Optional[EditorSettings] = None) -> Text:
    settings = settings or _DEFAULT_SETTINGS
    width = min(text.width, settings.canvas_width)
    x = max(0.0, min(text.x, settings.canvas_width - width))
    height = text_height(text.with_fields(width=width), settings) or 0.0
    height = min(height, settings.canvas_height)
    y = max(0.0, min(text.y, settings.canvas_height - height))
    return text.with_fields(x=x, y=y, width=width)


def clamp_to_canvas(obj: ShapeBase, settings: Optional[EditorSettings] = None) -> ShapeBase:
    if isinstance(obj, Rectangle):
        return clamp_rect_to_canvas(obj, settings)
    if isinstance(obj, Circle):
        return clamp_circle_to_canvas(obj, settings)
    if isinstance(obj, Star):
        return clamp_star_to_canvas(obj, settings)
    if isinstance(obj, Text):
        return clamp_text_to_canvas(obj, settings)
    return obj


# Bounds side-table ----------------------------------------------------------------


class BoundsCache:
    """
    Per-object bounds keyed by id and invalidated when the object's
    modification marker changes. Objects themselves are never annotated.
    """

    def __init__(self, settings: Optional[EditorSettings] = None) -> None:
        self._settings = settings or _DEFAULT_SETTINGS
        self._entries: Dict[str, Tuple[float, Optional[Bounds]]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, obj: ShapeBase) -> Optional[Bounds]:
        entry = self._entries.get(obj.id)
        if entry is not None and entry[0] == obj.modified_at:
            self.hits += 1
            return entry[1]
        self.misses += 1
        value = bounds(obj, self._settings)
        self._entries[obj.id] = (obj.modified_at, value)
        return value

    def invalidate(self, object_id: str) -> None:
        self._entries.pop(object_id, None)

    def prune(self, live_ids: Iterable[str]) -> None:
        keep = set(live_ids)
        for object_id in [oid for oid in self._entries if oid not in keep]:
            self._entries.pop(object_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, int]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}


__all__ = [
    "BoundsCache",
    "Bounds",
    "CanvasObject",
    "Circle",
    "Handle",
    "Point",
    "Rectangle",
    "SHAPE_CLASSES",
    "ShapeBase",
    "ShapeType",
    "Star",
    "Text",
    "bounds",
    "clamp_circle_to_canvas",
    "clamp_rect_to_canvas",
    "clamp_star_to_canvas",
    "clamp_text_to_canvas",
    "clamp_to_canvas",
    "closest_corner",
    "contains_point",
    "fit_rect_to_canvas",
    "is_finite_number",
    "parse_object",
    "rotate_point",
    "rotated_corners",
    "text_height",
    "topmost_at",
]
