"""Tests for payroll period and slip state machines."""

import pytest

from motoshop_engine.errors import ErrorKind, InvalidStateError
from motoshop_engine.services.state_machine import (
    InvalidTransitionError,
    PayrollPeriodStateMachine,
    PayrollSlipStateMachine,
    PeriodStatus,
    SlipStatus,
)


class TestPayrollPeriodStateMachine:
    """Test period transitions."""

    def test_valid_transitions(self):
        """Test that the forward chain is allowed."""
        assert PayrollPeriodStateMachine.can_transition("draft", "published") is True
        assert PayrollPeriodStateMachine.can_transition("published", "finalized") is True
        assert PayrollPeriodStateMachine.can_transition("finalized", "paid") is True

    def test_invalid_transitions(self):
        """Test that skipping and going backwards are blocked."""
        # Can't skip
        assert PayrollPeriodStateMachine.can_transition("draft", "finalized") is False
        assert PayrollPeriodStateMachine.can_transition("published", "paid") is False

        # Can't go backwards
        assert PayrollPeriodStateMachine.can_transition("published", "draft") is False
        assert PayrollPeriodStateMachine.can_transition("paid", "finalized") is False

        # Paid is terminal
        assert PayrollPeriodStateMachine.get_next_statuses("paid") == []

    def test_enum_members_accepted(self):
        assert PayrollPeriodStateMachine.can_transition(
            PeriodStatus.DRAFT, PeriodStatus.PUBLISHED
        )

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            PayrollPeriodStateMachine.validate_transition("draft", "paid")

        error = exc_info.value
        assert error.from_status == "draft"
        assert error.to_status == "paid"
        assert error.current_status == "draft"
        assert error.required_status == ("finalized",)
        assert error.kind == ErrorKind.INVALID_STATE
        assert isinstance(error, InvalidStateError)
        assert "'draft'" in str(error)
        assert "'finalized'" in str(error)

    def test_generation_and_adjustment_rules(self):
        assert PayrollPeriodStateMachine.can_generate("draft") is True
        assert PayrollPeriodStateMachine.can_generate("published") is False
        assert PayrollPeriodStateMachine.can_adjust("finalized") is True
        assert PayrollPeriodStateMachine.can_adjust("paid") is False


class TestPayrollSlipStateMachine:
    """Test slip transitions."""

    def test_valid_transitions(self):
        assert PayrollSlipStateMachine.can_transition("draft", "published") is True
        assert PayrollSlipStateMachine.can_transition("published", "confirmed") is True
        assert PayrollSlipStateMachine.can_transition("published", "disputed") is True
        assert PayrollSlipStateMachine.can_transition("confirmed", "finalized") is True
        assert PayrollSlipStateMachine.can_transition("finalized", "paid") is True

    def test_dispute_resolution_is_only_backward_edge(self):
        assert PayrollSlipStateMachine.can_transition("disputed", "published") is True
        assert PayrollSlipStateMachine.can_transition("confirmed", "published") is False
        assert PayrollSlipStateMachine.can_transition("finalized", "published") is False
        assert PayrollSlipStateMachine.can_transition("published", "draft") is False

    def test_disputed_cannot_finalize(self):
        assert PayrollSlipStateMachine.can_transition("disputed", "finalized") is False

    def test_confirm_only_from_published(self):
        for status in SlipStatus:
            expected = status == SlipStatus.PUBLISHED
            assert PayrollSlipStateMachine.can_transition(status, "confirmed") is expected

    def test_sources_of(self):
        assert set(PayrollSlipStateMachine.sources_of("published")) == {"draft", "disputed"}
        assert PayrollSlipStateMachine.sources_of("paid") == ("finalized",)

    def test_accepted_statuses(self):
        assert PayrollSlipStateMachine.is_accepted("confirmed") is True
        assert PayrollSlipStateMachine.is_accepted("finalized") is True
        assert PayrollSlipStateMachine.is_accepted("published") is False
