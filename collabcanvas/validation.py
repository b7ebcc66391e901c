from __future__ import annotations

"""
Guards that keep non-finite or non-positive geometry away from the override
cache, the ephemeral channel and the authoritative store.

All helpers are pure. They accept either typed objects or raw payloads with
camelCase or snake_case keys, and always report snake_case field names.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from .errors import ValidationError
from .geometry import SHAPE_CLASSES, ShapeBase, ShapeType, Star, is_finite_number, parse_object

LOGGER = logging.getLogger(__name__)

NUMERIC_FIELDS: FrozenSet[str] = frozenset(
    {
        "x",
        "y",
        "width",
        "height",
        "radius",
        "inner_radius",
        "outer_radius",
        "rotation",
        "font_size",
        "num_points",
        "z_index",
    }
)
SIZE_FIELDS: FrozenSet[str] = frozenset(
    {"width", "height", "radius", "inner_radius", "outer_radius", "font_size"}
)
PASSTHROUGH_FIELDS: FrozenSet[str] = frozenset(
    {"fill", "text", "font_family", "bold", "italic", "underline"}
)

_ALIASES = {
    "innerRadius": "inner_radius",
    "outerRadius": "outer_radius",
    "numPoints": "num_points",
    "fontSize": "font_size",
    "fontFamily": "font_family",
    "zIndex": "z_index",
}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    issues: List[str] = field(default_factory=list)

    @property
    def error(self) -> Optional[str]:
        return self.issues[0] if self.issues else None

    def raise_for(self, object_id: Optional[str] = None) -> None:
        if not self.valid:
            raise ValidationError(self.issues, object_id=object_id)


def _normalise_keys(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {_ALIASES.get(str(key), str(key)): value for key, value in payload.items()}


def _relevant_fields(shape_type: Optional[ShapeType]) -> Optional[FrozenSet[str]]:
    if shape_type is None:
        return None
    model = SHAPE_CLASSES[ShapeType(shape_type)]
    return frozenset(model.model_fields)


def _field_issue(name: str, value: Any) -> Optional[str]:
    if name in NUMERIC_FIELDS:
        if value is None:
            return f"{name} is missing"
        if not is_finite_number(value):
            return f"{name} must be a finite number (got {value!r})"
        if name in SIZE_FIELDS and value <= 0:
            return f"{name} must be positive (got {value!r})"
        if name == "num_points" and (int(value) != value or value < 3):
            return f"num_points must be an integer >= 3 (got {value!r})"
    return None


def validate_object_for_resize(obj: ShapeBase | Mapping[str, Any]) -> ValidationResult:
    """
    Check that every field a resize reads is present and usable.

    Rejects when the shape type is unknown, when the anchor or any size field
    is missing or non-finite, when a size field is not strictly positive, or
    when a star's radii are inverted.
    """
    if not isinstance(obj, ShapeBase):
        if not isinstance(obj, Mapping):
            return ValidationResult(False, ["object is not a mapping"])
        raw_type = obj.get("type")
        if raw_type not in {item.value for item in ShapeType}:
            return ValidationResult(False, [f"unknown shape type {raw_type!r}"])
        try:
            obj = parse_object(obj)
        except ValidationError as exc:
            return ValidationResult(False, list(exc.issues))

    issues: List[str] = []
    for name in ("x", "y") + tuple(obj.SIZE_FIELDS):
        issue = _field_issue(name, getattr(obj, name))
        if issue:
            issues.append(issue)
    if obj.rotation is not None and not is_finite_number(obj.rotation):
        issues.append(f"rotation must be a finite number (got {obj.rotation!r})")
    if isinstance(obj, Star):
        issue = _field_issue("num_points", obj.num_points)
        if issue:
            issues.append(issue)
        if not issues and obj.inner_radius >= obj.outer_radius:
            issues.append("inner_radius must be smaller than outer_radius")
    font_size = getattr(obj, "font_size", None)
    if font_size is not None:
        issue = _field_issue("font_size", font_size)
        if issue:
            issues.append(issue)
    return ValidationResult(not issues, issues)


def validate_object_update(
    update: Mapping[str, Any], shape_type: Optional[ShapeType] = None
) -> ValidationResult:
    """Validate only the fields present in a partial update."""
    fields = _normalise_keys(update)
    relevant = _relevant_fields(shape_type)
    issues: List[str] = []
    for name, value in fields.items():
        if relevant is not None and name not in relevant:
            issues.append(f"{name} does not apply to {ShapeType(shape_type).value}")
            continue
        issue = _field_issue(name, value)
        if issue:
            issues.append(issue)
    inner = fields.get("inner_radius")
    outer = fields.get("outer_radius")
    if (
        is_finite_number(inner)
        and is_finite_number(outer)
        and inner > 0
        and outer > 0
        and inner >= outer
    ):
        issues.append("inner_radius must be smaller than outer_radius")
    return ValidationResult(not issues, issues)


def sanitize_object_update(
    update: Mapping[str, Any], shape_type: Optional[ShapeType] = None
) -> Optional[Dict[str, Any]]:
    """
    Strip an update down to the fields that are safe to apply and transmit.

    Returns ``None`` when no valid property survives.
    """
    fields = _normalise_keys(update)
    relevant = _relevant_fields(shape_type)
    clean: Dict[str, Any] = {}
    dropped: List[str] = []
    for name, value in fields.items():
        if relevant is not None and name not in relevant:
            continue
        if name in NUMERIC_FIELDS:
            if _field_issue(name, value) is None:
                clean[name] = value
            else:
                dropped.append(name)
        elif name in PASSTHROUGH_FIELDS:
            clean[name] = value
    inner = clean.get("inner_radius")
    outer = clean.get("outer_radius")
    if inner is not None and outer is not None and inner >= outer:
        clean.pop("inner_radius")
        clean.pop("outer_radius")
        dropped.extend(["inner_radius", "outer_radius"])
    if dropped:
        LOGGER.debug("Dropped invalid update fields: %s", ", ".join(sorted(dropped)))
    return clean or None


def find_invalid_values(obj: Any) -> List[str]:
    """Names of numeric fields holding ``NaN``/infinite values."""
    if isinstance(obj, ShapeBase):
        fields = obj.model_dump()
    elif isinstance(obj, Mapping):
        fields = _normalise_keys(obj)
    else:
        return ["entire_object"]
    invalid: List[str] = []
    for name in sorted(fields):
        value = fields[name]
        if name not in NUMERIC_FIELDS or value is None or isinstance(value, bool):
            continue
        if isinstance(value, (int, float)) and not is_finite_number(value):
            invalid.append(name)
        elif not isinstance(value, (int, float)):
            invalid.append(name)
    return invalid


__all__ = [
    "NUMERIC_FIELDS",
    "PASSTHROUGH_FIELDS",
    "SIZE_FIELDS",
    "ValidationResult",
    "find_invalid_values",
    "sanitize_object_update",
    "validate_object_for_resize",
    "validate_object_update",
]
