"""Tests for the payroll record state machine."""

import pytest
from hypothesis import given, strategies as st

from payroll_approval.services.state_machine import (
    FinanceAction,
    InvalidTransitionError,
    PayrollRecordStateMachine,
    PayrollRecordStatus,
)

PENDING = "Pending_Finance_Approval"


class TestPayrollRecordStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        assert PayrollRecordStateMachine.can_transition(PENDING, "Approved") is True
        assert PayrollRecordStateMachine.can_transition(PENDING, "Rejected") is True
        assert PayrollRecordStateMachine.can_transition("Approved", "Paid") is True

        # approved → rejected (reversal before payment)
        assert PayrollRecordStateMachine.can_transition("Approved", "Rejected") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't pay before approval
        assert PayrollRecordStateMachine.can_transition(PENDING, "Paid") is False

        # No way back to pending
        assert PayrollRecordStateMachine.can_transition("Approved", PENDING) is False
        assert PayrollRecordStateMachine.can_transition("Approved", "Approved") is False

        # Rejected and Paid are terminal
        assert PayrollRecordStateMachine.can_transition("Rejected", "Approved") is False
        assert PayrollRecordStateMachine.can_transition("Rejected", PENDING) is False
        assert PayrollRecordStateMachine.can_transition("Paid", "Rejected") is False
        assert PayrollRecordStateMachine.can_transition("Paid", "Approved") is False

    def test_unknown_status_has_no_transitions(self):
        assert PayrollRecordStateMachine.can_transition("Draft", "Approved") is False
        assert PayrollRecordStateMachine.get_next_statuses("Draft") == []

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            PayrollRecordStateMachine.validate_transition(PENDING, "Paid")

        assert exc_info.value.from_status == PENDING
        assert exc_info.value.to_status == "Paid"
        assert exc_info.value.code == "INVALID_TRANSITION"
        assert exc_info.value.reason == "allowed next statuses: Approved, Rejected"

    def test_validate_transition_from_terminal_names_reason(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            PayrollRecordStateMachine.validate_transition(
                PayrollRecordStatus.REJECTED, PayrollRecordStatus.APPROVED
            )

        assert exc_info.value.from_status == "Rejected"
        assert exc_info.value.to_status == "Approved"
        assert "terminal" in exc_info.value.reason

    def test_is_terminal(self):
        assert PayrollRecordStateMachine.is_terminal("Rejected") is True
        assert PayrollRecordStateMachine.is_terminal("Paid") is True
        assert PayrollRecordStateMachine.is_terminal("Approved") is False
        assert PayrollRecordStateMachine.is_terminal(PENDING) is False

    def test_is_reversal(self):
        """Test reversal detection."""
        assert PayrollRecordStateMachine.is_reversal("Approved", "Rejected") is True
        assert PayrollRecordStateMachine.is_reversal(PENDING, "Rejected") is False
        assert PayrollRecordStateMachine.is_reversal("Approved", "Paid") is False

    def test_get_next_statuses(self):
        """Test getting allowed next statuses."""
        assert set(PayrollRecordStateMachine.get_next_statuses(PENDING)) == {
            "Approved",
            "Rejected",
        }
        assert set(PayrollRecordStateMachine.get_next_statuses("Approved")) == {
            "Paid",
            "Rejected",
        }
        assert PayrollRecordStateMachine.get_next_statuses("Paid") == []

    def test_action_for(self):
        assert PayrollRecordStateMachine.action_for("Approved") == FinanceAction.APPROVED
        assert PayrollRecordStateMachine.action_for("Rejected") == FinanceAction.REJECTED
        assert PayrollRecordStateMachine.action_for("Paid") == FinanceAction.PAID


class TestTransitionSequences:
    """Random request sequences against a single record."""

    @given(st.lists(st.sampled_from(list(PayrollRecordStatus)), max_size=20))
    def test_terminal_status_is_never_left(self, requests):
        status = PayrollRecordStatus.PENDING_FINANCE_APPROVAL.value
        for requested in requests:
            if PayrollRecordStateMachine.can_transition(status, requested):
                assert not PayrollRecordStateMachine.is_terminal(status)
                status = requested.value

        if PayrollRecordStateMachine.is_terminal(status):
            assert PayrollRecordStateMachine.get_next_statuses(status) == []

    @given(st.lists(st.sampled_from(list(PayrollRecordStatus)), max_size=20))
    def test_at_most_one_rejection_and_one_payment(self, requests):
        status = PayrollRecordStatus.PENDING_FINANCE_APPROVAL.value
        accepted = []
        for requested in requests:
            if PayrollRecordStateMachine.can_transition(status, requested):
                accepted.append(requested)
                status = requested.value

        assert accepted.count(PayrollRecordStatus.REJECTED) <= 1
        assert accepted.count(PayrollRecordStatus.PAID) <= 1
        assert not (
            PayrollRecordStatus.REJECTED in accepted and PayrollRecordStatus.PAID in accepted
        )
