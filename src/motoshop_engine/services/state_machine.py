"""Payroll period and slip state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from motoshop_engine.errors import InvalidStateError, status_value


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    DRAFT = "draft"
    PUBLISHED = "published"
    FINALIZED = "finalized"
    PAID = "paid"


class SlipStatus(str, Enum):
    """Payroll slip status values."""

    DRAFT = "draft"
    PUBLISHED = "published"
    CONFIRMED = "confirmed"
    DISPUTED = "disputed"
    FINALIZED = "finalized"
    PAID = "paid"


class InvalidTransitionError(InvalidStateError):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        from_status: str,
        to_status: str,
        allowed_from: tuple[str, ...] = (),
        reason: str | None = None,
    ):
        self.from_status = status_value(from_status)
        self.to_status = status_value(to_status)
        if reason is None:
            reason = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        super().__init__(from_status, allowed_from or (), reason)


class _StateMachine:
    VALID_TRANSITIONS: dict[str, list[str]] = {}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(status_value(from_status), [])
        return status_value(to_status) in allowed

    @classmethod
    def sources_of(cls, to_status: str) -> tuple[str, ...]:
        """Statuses from which ``to_status`` may be reached."""
        target = status_value(to_status)
        return tuple(
            status_value(source)
            for source, targets in cls.VALID_TRANSITIONS.items()
            if target in targets
        )

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status, cls.sources_of(to_status))

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(status_value(current_status), [])


class PayrollPeriodStateMachine(_StateMachine):
    """State machine for payroll period status transitions.

    Allowed transitions (strictly forward, no skipping):
    - draft → published
    - published → finalized
    - finalized → paid
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.DRAFT: [PeriodStatus.PUBLISHED],
        PeriodStatus.PUBLISHED: [PeriodStatus.FINALIZED],
        PeriodStatus.FINALIZED: [PeriodStatus.PAID],
        PeriodStatus.PAID: [],  # Terminal state
    }

    # Statuses where slips may be (re)generated
    GENERATION_ALLOWED = {PeriodStatus.DRAFT}

    @classmethod
    def can_generate(cls, status: str) -> bool:
        return status in cls.GENERATION_ALLOWED

    @classmethod
    def can_adjust(cls, status: str) -> bool:
        """Slips may be adjusted until the period is paid."""
        return status != PeriodStatus.PAID


class PayrollSlipStateMachine(_StateMachine):
    """State machine for payroll slip status transitions.

    Allowed transitions:
    - draft → published
    - published → confirmed | disputed | finalized (override)
    - confirmed → finalized
    - disputed → published (dispute resolution only)
    - finalized → paid
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        SlipStatus.DRAFT: [SlipStatus.PUBLISHED],
        SlipStatus.PUBLISHED: [
            SlipStatus.CONFIRMED,
            SlipStatus.DISPUTED,
            SlipStatus.FINALIZED,
        ],
        SlipStatus.CONFIRMED: [SlipStatus.FINALIZED],
        SlipStatus.DISPUTED: [SlipStatus.PUBLISHED],
        SlipStatus.FINALIZED: [SlipStatus.PAID],
        SlipStatus.PAID: [],  # Terminal state
    }

    # Slips counted as accepted when finalizing without an override
    ACCEPTED = {SlipStatus.CONFIRMED, SlipStatus.FINALIZED}

    @classmethod
    def is_accepted(cls, status: str) -> bool:
        return status in cls.ACCEPTED
