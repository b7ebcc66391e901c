from __future__ import annotations

"""
Failure taxonomy for the collaborative editing core.

Nothing raised from here is fatal: the editor catches ``CanvasCoreError`` at the
event-dispatch boundary, no-ops the gesture, and turns the failure into a
``Notice`` for the surrounding application to display.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence


class CanvasCoreError(RuntimeError):
    """Base class for recoverable editing-core failures."""

    kind = "error"

    def __init__(self, message: str, *, object_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.object_id = object_id


class ValidationError(CanvasCoreError):
    """Raised when geometry is missing, non-finite or non-positive."""

    kind = "validation"

    def __init__(
        self,
        issues: Sequence[str] | str,
        *,
        object_id: Optional[str] = None,
    ) -> None:
        if isinstance(issues, str):
            issues = [issues]
        self.issues = list(issues)
        message = "; ".join(self.issues) or "invalid geometry"
        super().__init__(message, object_id=object_id)


class LockDenied(CanvasCoreError):
    """Raised when another client holds the edit lock for an object."""

    kind = "lock_denied"

    def __init__(self, object_id: str, *, holder: Optional[str] = None) -> None:
        self.holder = holder
        if holder:
            message = f"cannot edit {object_id}: locked by {holder}"
        else:
            message = f"cannot edit {object_id}: lock unavailable"
        super().__init__(message, object_id=object_id)


class CommitFailed(CanvasCoreError):
    """Raised when the authoritative write was rejected or timed out."""

    kind = "commit_failed"

    def __init__(self, object_id: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"failed to save {object_id}{detail}", object_id=object_id)


class StaleReference(CanvasCoreError):
    """Raised when a referenced object no longer exists."""

    kind = "stale_reference"

    def __init__(self, object_id: str) -> None:
        super().__init__(f"object {object_id} no longer exists", object_id=object_id)


class HistoryConflict(CanvasCoreError):
    """Raised when an undo/redo no longer applies to the current canvas."""

    kind = "history_conflict"


@dataclass(frozen=True)
class Notice:
    """User-visible notice handed to the application's ``notify`` callback."""

    kind: str
    message: str
    object_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(cls, exc: CanvasCoreError) -> "Notice":
        details: Dict[str, Any] = {}
        if isinstance(exc, LockDenied) and exc.holder:
            details["holder"] = exc.holder
        if isinstance(exc, ValidationError):
            details["issues"] = list(exc.issues)
        return cls(
            kind=exc.kind,
            message=str(exc),
            object_id=exc.object_id,
            details=details,
        )

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.object_id:
            data["object_id"] = self.object_id
        if self.details:
            data["details"] = dict(self.details)
        return data


__all__ = [
    "CanvasCoreError",
    "CommitFailed",
    "HistoryConflict",
    "LockDenied",
    "Notice",
    "StaleReference",
    "ValidationError",
]
