"""Type definitions for the approval workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class RejectionType(str, Enum):
    """Whether a rejection targeted one record or a whole batch."""

    INDIVIDUAL = "Individual"
    BATCH = "Batch"


class ReferenceType(str, Enum):
    """What an audit entry refers to."""

    INDIVIDUAL = "Individual"
    BATCH = "Batch"


@dataclass(frozen=True)
class PayrollLineItem:
    """One employee's already-computed payroll amounts for a pay period.

    Amounts are validated by the record store before anything is persisted.
    """

    employee_id: str
    employee_name: str
    pay_period_start: date
    pay_period_end: date

    basic_salary: Decimal
    allowances: Decimal
    gross_salary: Decimal

    tax: Decimal
    statutory_deductions: Decimal
    other_deductions: Decimal
    total_deductions: Decimal

    net_salary: Decimal

    MONEY_FIELDS = (
        "basic_salary",
        "allowances",
        "gross_salary",
        "tax",
        "statutory_deductions",
        "other_deductions",
        "total_deductions",
        "net_salary",
    )


@dataclass(frozen=True)
class BatchCounts:
    """Member status counts for one batch."""

    total: int
    approved: int = 0
    rejected: int = 0
    paid: int = 0

    @property
    def pending(self) -> int:
        return self.total - self.approved - self.rejected - self.paid


@dataclass(frozen=True)
class BatchCreated:
    """Result of creating a batch."""

    batch_id: UUID
    record_ids: list[UUID]
    status: str


@dataclass(frozen=True)
class TransitionResult:
    """Result of a single record transition."""

    record_id: UUID
    batch_id: UUID
    previous_status: str
    new_status: str
    batch_status: str
    rejection_id: int | None = None


@dataclass(frozen=True)
class BatchActionResult:
    """Result of a whole-batch approve or reject."""

    batch_id: UUID
    affected: int
    skipped: int
    batch_status: str
    affected_record_ids: list[UUID] = field(default_factory=list)


@dataclass(frozen=True)
class BatchStatusSummary:
    """Derived status, counts and totals of a batch."""

    batch_id: UUID
    period: str
    status: str
    total_employees: int
    approved_count: int
    rejected_count: int
    paid_count: int
    total_gross_amount: Decimal
    total_net_amount: Decimal

    @property
    def pending_count(self) -> int:
        return self.total_employees - self.approved_count - self.rejected_count - self.paid_count


@dataclass(frozen=True)
class StatusBucket:
    """Count and net amount of the records in one status."""

    count: int = 0
    amount: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class FinancialImpact:
    """Per-status breakdown of a batch's net amounts."""

    batch_id: UUID
    pending: StatusBucket
    approved: StatusBucket
    rejected: StatusBucket
    paid: StatusBucket

    @property
    def cash_flow_impact(self) -> Decimal:
        """Net amount committed to leave the account (approved plus paid)."""
        return self.approved.amount + self.paid.amount
