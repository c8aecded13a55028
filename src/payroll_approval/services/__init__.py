"""Payroll approval services."""

from payroll_approval.services.state_machine import (
    BatchStatus,
    InvalidTransitionError,
    PayrollRecordStateMachine,
    PayrollRecordStatus,
)
from payroll_approval.services.approval_engine import ApprovalEngine
from payroll_approval.services.batch_aggregator import BatchAggregator, derive_batch_status

__all__ = [
    "ApprovalEngine",
    "BatchAggregator",
    "BatchStatus",
    "InvalidTransitionError",
    "PayrollRecordStateMachine",
    "PayrollRecordStatus",
    "derive_batch_status",
]
