"""Payroll record state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from payroll_approval.exceptions import PayrollApprovalError


class PayrollRecordStatus(str, Enum):
    """Payroll record status values."""

    PENDING_FINANCE_APPROVAL = "Pending_Finance_Approval"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    PAID = "Paid"


class BatchStatus(str, Enum):
    """Derived payroll batch status values."""

    PENDING_FINANCE_APPROVAL = "Pending_Finance_Approval"
    PARTIALLY_APPROVED = "Partially_Approved"
    FULLY_APPROVED = "Fully_Approved"
    REJECTED = "Rejected"
    PAID = "Paid"


class FinanceAction(str, Enum):
    """Finance actions recorded in the audit trail."""

    APPROVED = "Approved"
    REJECTED = "Rejected"
    PAID = "Paid"


class InvalidTransitionError(PayrollApprovalError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = str(getattr(from_status, "value", from_status))
        self.to_status = str(getattr(to_status, "value", to_status))
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollRecordStateMachine:
    """State machine for payroll record status transitions.

    Allowed transitions:
    - Pending_Finance_Approval → Approved
    - Pending_Finance_Approval → Rejected
    - Approved → Paid
    - Approved → Rejected (reversal before payment)

    Rejected and Paid are terminal.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRecordStatus.PENDING_FINANCE_APPROVAL: [
            PayrollRecordStatus.APPROVED,
            PayrollRecordStatus.REJECTED,
        ],
        PayrollRecordStatus.APPROVED: [
            PayrollRecordStatus.PAID,
            PayrollRecordStatus.REJECTED,
        ],
        PayrollRecordStatus.REJECTED: [],  # Terminal state
        PayrollRecordStatus.PAID: [],  # Terminal state
    }

    TERMINAL = {
        PayrollRecordStatus.REJECTED,
        PayrollRecordStatus.PAID,
    }

    # Audit action written for a transition into each status
    ACTION_FOR_STATUS: dict[str, FinanceAction] = {
        PayrollRecordStatus.APPROVED: FinanceAction.APPROVED,
        PayrollRecordStatus.REJECTED: FinanceAction.REJECTED,
        PayrollRecordStatus.PAID: FinanceAction.PAID,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            if cls.is_terminal(from_status):
                reason = "record is in a terminal status"
            elif next_statuses := cls.get_next_statuses(from_status):
                reason = "allowed next statuses: " + ", ".join(s.value for s in next_statuses)
            else:
                reason = None
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def is_reversal(cls, from_status: str, to_status: str) -> bool:
        """Check if this transition rejects an already approved record."""
        return (
            from_status == PayrollRecordStatus.APPROVED
            and to_status == PayrollRecordStatus.REJECTED
        )

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def action_for(cls, to_status: str) -> FinanceAction:
        return cls.ACTION_FOR_STATUS[to_status]
