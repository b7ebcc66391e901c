"""
Structured gesture logging built on ``logging.LoggerAdapter``.

Every record is rendered as one JSON object carrying the bound editor context
(``canvas_id``, ``user_id``) plus the event name and its fields, so a log
aggregator can follow a single gesture across clients.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, MutableMapping

Serializer = Callable[[Mapping[str, Any]], str]
_DEFAULT_EVENT = "canvas"


def _coerce(value: Any) -> Any:
    if isinstance(value, Enum):
        return _coerce(value.value)
    if isinstance(value, float) and not math.isfinite(value):
        return repr(value)
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
        return [_coerce(item) for item in items]
    if isinstance(value, Mapping):
        return {str(key): _coerce(item) for key, item in value.items()}
    as_dict = getattr(value, "as_dict", None)
    if callable(as_dict):
        return _coerce(as_dict())
    if is_dataclass(value) and not isinstance(value, type):
        return _coerce(asdict(value))
    return repr(value)


def _default_serializer(payload: Mapping[str, Any]) -> str:
    coerced = {str(key): _coerce(value) for key, value in payload.items()}
    return json.dumps(coerced, ensure_ascii=False, sort_keys=True)


class StructLogAdapter(logging.LoggerAdapter):
    """Adapter that encodes log calls as structured JSON strings."""

    def __init__(
        self,
        logger: logging.Logger,
        context: Mapping[str, Any] | None = None,
        *,
        serializer: Serializer | None = None,
    ) -> None:
        super().__init__(logger, dict(context or {}))
        self._serializer: Serializer = serializer or _default_serializer

    def bind(self, **context: Any) -> "StructLogAdapter":
        merged = dict(self.extra)
        merged.update(context)
        return StructLogAdapter(self.logger, merged, serializer=self._serializer)

    def unbind(self, *keys: str) -> "StructLogAdapter":
        filtered = {key: value for key, value in self.extra.items() if key not in keys}
        return StructLogAdapter(self.logger, filtered, serializer=self._serializer)

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[str, dict]:
        event = kwargs.pop("event", None)
        payload: dict = dict(self.extra)

        extra_fields = kwargs.pop("extra", None)
        if isinstance(extra_fields, Mapping):
            payload.update(extra_fields)

        if event is None:
            if isinstance(msg, str):
                event = msg
            else:
                payload["message"] = repr(msg)
                event = _DEFAULT_EVENT
        payload.setdefault("event", event or _DEFAULT_EVENT)
        payload.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        payload.setdefault("logger", self.logger.name)

        return self._serializer(payload), dict(kwargs)


def get_logger(name: str, **context: Any) -> StructLogAdapter:
    """Return an adapter bound to ``logging.getLogger(name)``."""
    return StructLogAdapter(logging.getLogger(name), context)


def serialize_event(payload: Mapping[str, Any]) -> str:
    return _default_serializer(payload)


__all__ = ["StructLogAdapter", "get_logger", "serialize_event"]
