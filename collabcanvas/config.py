from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

LOGGER = logging.getLogger(__name__)


class EditorSettings(BaseModel):
    """Tunables for the editing core. Defaults match the production canvas."""

    canvas_width: float = Field(default=5000.0, gt=0)
    canvas_height: float = Field(default=5000.0, gt=0)

    rect_min_size: float = Field(default=2.0, gt=0)
    circle_min_radius: float = Field(default=1.0, gt=0)
    star_min_outer_radius: float = Field(default=1.0, gt=0)
    star_inner_ratio: float = Field(default=0.4, gt=0, lt=1)
    star_default_points: int = Field(default=5, ge=3)
    text_min_width: float = Field(default=50.0, gt=0)
    text_default_width: float = Field(default=200.0, gt=0)
    text_default_font_size: float = Field(default=24.0, gt=0)
    text_line_height: float = Field(default=1.2, gt=0)
    text_char_width: float = Field(default=0.6, gt=0)

    creation_min_size: float = Field(default=1.0, ge=0)
    drag_select_threshold: float = Field(default=5.0, ge=0)
    move_threshold: float = Field(default=2.0, ge=0)
    handle_hit_factor: float = Field(default=0.75, gt=0)
    double_click_seconds: float = Field(default=0.3, gt=0)
    broadcast_interval: float = Field(default=0.075, ge=0)
    history_limit: int = Field(default=5, ge=1)

    rotation_handle_offset: float = Field(default=30.0, gt=0)
    rotation_handle_radius: float = Field(default=12.0, gt=0)
    rotation_snap_degrees: float = Field(default=15.0, gt=0, le=180)

    default_fill: str = "#808080"

    model_config = ConfigDict(extra="forbid", frozen=True)


_CACHE: Optional[EditorSettings] = None
_CACHE_SIGNATURE: tuple[float, float] | None = None


def _candidate_paths() -> tuple[Path, Path]:
    return (Path("collabcanvas.json"), Path("config/collabcanvas.json"))


def _signature() -> tuple[float, float]:
    values: list[float] = []
    for path in _candidate_paths():
        try:
            values.append(path.stat().st_mtime)
        except FileNotFoundError:
            values.append(0.0)
    return (values[0], values[1])


def _read_section(path: Path) -> Dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return {}
    if not isinstance(raw, dict):
        return {}
    section = raw.get("editor")
    if not isinstance(section, dict):
        return {}
    return section


def load_settings(*, refresh: bool = False) -> EditorSettings:
    global _CACHE, _CACHE_SIGNATURE
    signature = _signature()
    if not refresh and _CACHE is not None and signature == _CACHE_SIGNATURE:
        return _CACHE

    merged: Dict[str, Any] = {}
    for path in _candidate_paths():
        if not path.exists():
            continue
        merged.update(_read_section(path))

    try:
        settings = EditorSettings(**merged)
    except ValidationError as exc:
        LOGGER.warning("Invalid editor settings, using defaults: %s", exc)
        settings = EditorSettings()

    _CACHE = settings
    _CACHE_SIGNATURE = signature
    return settings


__all__ = ["EditorSettings", "load_settings"]
