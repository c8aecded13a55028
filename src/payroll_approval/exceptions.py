"""Typed exceptions for the payroll approval core.

Every exception carries a machine-readable ``code`` and structured data so
that callers (the HTTP adapter, the CLI) can branch on type instead of
parsing messages.

    PayrollApprovalError (base)
    +-- ValidationError          malformed or inconsistent input
    +-- InvalidTransitionError   state machine violation (services.state_machine)
    +-- NotFoundError            unknown batch, record or rejection id
    +-- AlreadyResolvedError     rejection resolved twice
    +-- ImmutableEntryError      attempt to change an audit entry
    +-- InconsistentBatchError   batch header disagrees with its records
    +-- PersistenceError         storage failure, safe to retry
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class PayrollApprovalError(Exception):
    """Base class for all payroll approval errors."""

    code: str = "PAYROLL_APPROVAL_ERROR"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "detail": str(self)}


class ValidationError(PayrollApprovalError):
    """Raised when input amounts or fields are malformed or inconsistent."""

    code = "VALIDATION_ERROR"

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class NotFoundError(PayrollApprovalError):
    """Raised when a batch, record or rejection id is unknown."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class AlreadyResolvedError(PayrollApprovalError):
    """Raised when a payment rejection is resolved a second time."""

    code = "ALREADY_RESOLVED"

    def __init__(
        self,
        rejection_id: int,
        resolved_at: datetime | None,
        resolved_by: str | None,
    ):
        self.rejection_id = rejection_id
        self.resolved_at = resolved_at
        self.resolved_by = resolved_by
        super().__init__(
            f"Rejection {rejection_id} was already resolved by {resolved_by} "
            f"at {resolved_at.isoformat() if resolved_at else 'unknown time'}"
        )


class ImmutableEntryError(PayrollApprovalError):
    """Raised when an append-only audit entry would be updated or deleted."""

    code = "IMMUTABLE_ENTRY"


class InconsistentBatchError(PayrollApprovalError):
    """Raised when a batch's total_employees does not match its record count."""

    code = "INCONSISTENT_BATCH"

    def __init__(self, batch_id: Any, record_count: int, total_employees: int):
        self.batch_id = batch_id
        self.record_count = record_count
        self.total_employees = total_employees
        super().__init__(
            f"Batch {batch_id} has {record_count} records but total_employees={total_employees}"
        )


class PersistenceError(PayrollApprovalError):
    """Raised when the underlying store aborts a unit of work.

    Nothing from the failed unit is committed, so the call may be retried.
    """

    code = "PERSISTENCE_ERROR"
