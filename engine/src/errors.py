"""
Exceptions raised by the normalization engine.

Only :class:`MissingRequiredFieldError` escapes a processing pass; every other
problem is local to one reading and is reported as a structured warning.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from engine.src.models import WarningCode


class EngineError(Exception):
    """Base class for all engine errors."""


class MissingRequiredFieldError(EngineError):
    """A batch-level structural field is absent; the whole pass aborts.

    Args:
        field: Name of the missing field (e.g. ``"payload"``).
        detail: Optional extra context for the caller.
    """

    def __init__(self, field: str, detail: str = "") -> None:
        self.field = field
        self.detail = detail
        msg = f"Missing required field '{field}'"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class InvalidNumericError(EngineError):
    """A value is not a finite number before or after calibration."""


class ReadingRejected(EngineError):
    """A single reading failed validation at the batch boundary.

    Args:
        code: Warning category reported for the dropped reading.
        message: Human-readable reason.
    """

    def __init__(self, code: WarningCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
