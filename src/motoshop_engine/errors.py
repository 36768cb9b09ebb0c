"""Error taxonomy shared by the loyalty and payroll engines.

Every error carries a machine-checkable ``kind``; mapping kinds to
transport status codes is left to the request layer.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error kinds exposed to callers."""

    NOT_FOUND = "not_found"
    INVALID_ARGUMENT = "invalid_argument"
    CONFLICT = "conflict"
    INVALID_STATE = "invalid_state"
    FORBIDDEN = "forbidden"


class EngineError(Exception):
    """Base class for all engine errors."""

    kind: ErrorKind

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


class NotFoundError(EngineError):
    """Raised when a rule version, tier, account, period, slip or employee is missing."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: Any = None, message: str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        if message is None:
            message = f"{entity} not found"
            if entity_id is not None:
                message = f"{entity} {entity_id} not found"
        super().__init__(message)


class InvalidArgumentError(EngineError):
    """Raised when an input value violates a business rule."""

    kind = ErrorKind.INVALID_ARGUMENT


class ConflictError(EngineError):
    """Raised on uniqueness violations (duplicate period, tier code, ...)."""

    kind = ErrorKind.CONFLICT


class ForbiddenError(EngineError):
    """Raised when the actor may not act on the target record."""

    kind = ErrorKind.FORBIDDEN


class InvalidStateError(EngineError):
    """Raised when a record is not in a status that allows the operation."""

    kind = ErrorKind.INVALID_STATE

    def __init__(
        self,
        current_status: str,
        required_status: str | tuple[str, ...],
        reason: str | None = None,
    ):
        self.current_status = status_value(current_status)
        if isinstance(required_status, str):
            required_status = (required_status,)
        self.required_status = tuple(status_value(s) for s in required_status)
        self.reason = reason
        msg = (
            f"Status is '{self.current_status}', "
            f"requires {' or '.join(repr(s) for s in self.required_status)}"
        )
        if reason:
            msg = f"{reason} ({msg})"
        super().__init__(msg)


def status_value(status: Any) -> str:
    """Plain string value of a status, whether given as enum member or string."""
    # str-mixin enums render as "Class.MEMBER" under str()
    return str(getattr(status, "value", status))
