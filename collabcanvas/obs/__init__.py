"""
Observability helpers for the editing core.

* ``StructLogAdapter`` – JSON-encoding ``logging.LoggerAdapter`` used for
  gesture lifecycle events (selection changes, resize start/commit/abandon,
  lock denials, commit failures).
"""

from __future__ import annotations

from .structlog_adapter import StructLogAdapter, get_logger, serialize_event

__all__ = ["StructLogAdapter", "get_logger", "serialize_event"]
