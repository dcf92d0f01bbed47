"""Typed exceptions for flowkit.

All errors raised through the workflow interface inherit from FlowkitError.
Each carries an ErrorKind tag so a presentation layer can turn it into an
actionable message without inspecting the class hierarchy.

A failed step during a test run is NOT an error: it is reported as a
StepResult with status FAILURE.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Tag identifying the family of a FlowkitError."""

    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    VALIDATION_FAILURE = "validation_failure"


class FlowkitError(Exception):
    """Base exception for all flowkit errors."""

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str, *, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for the presentation layer."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "context": dict(self.context),
        }


class NotFoundError(FlowkitError):
    """An operation referenced a step id that does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, step_id: str, available: list[str] | None = None) -> None:
        available = available or []
        available_str = ", ".join(available) if available else "(none)"
        super().__init__(
            f"Step '{step_id}' not found. Available: {available_str}",
            context={"step_id": step_id},
        )
        self.step_id = step_id
        self.available = available


class InvalidStateError(FlowkitError):
    """The workflow is not in a state that allows the operation."""

    kind = ErrorKind.INVALID_STATE


class ValidationFailure(FlowkitError):
    """A payload or setting failed validation."""

    kind = ErrorKind.VALIDATION_FAILURE

    def __init__(self, message: str, *, field: str | None = None, value: Any = None):
        context: dict[str, Any] = {}
        if field:
            context["field"] = field
        if value is not None:
            # Truncate long values for readability
            str_val = str(value)
            context["value"] = str_val[:100] + "..." if len(str_val) > 100 else str_val
        super().__init__(message, context=context)
        self.field = field
        self.value = value
