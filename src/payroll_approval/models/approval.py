"""Payment rejection and finance approval audit models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from payroll_approval.exceptions import ImmutableEntryError
from payroll_approval.models.base import Base, utcnow
from payroll_approval.models.payroll import Money


class PaymentRejection(Base):
    """Why and when a payroll record was rejected, and whether HR acted on it.

    One row per rejection event. Only the notification and resolution
    fields change after insert.
    """

    __tablename__ = "payment_rejection"

    rejection_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    record_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_record.record_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    batch_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_batch.batch_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[str] = mapped_column(String(50), nullable=False)
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    rejection_type: Mapped[str] = mapped_column(String, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    amount_rejected: Mapped[Decimal] = mapped_column(Money, nullable=False)
    rejected_by: Mapped[str] = mapped_column(String(100), nullable=False)
    rejected_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    hr_notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hr_notified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "rejection_type IN ('Individual', 'Batch')",
            name="payment_rejection_type_check",
        ),
        Index("ix_payment_rejection_rejected_resolved", "rejected_at", "resolved"),
    )


class FinanceApprovalAuditEntry(Base):
    """Append-only record of an accepted finance transition.

    The integer key orders entries; ``action_at`` is for display only.
    """

    __tablename__ = "finance_approval_audit"

    audit_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reference_type: Mapped[str] = mapped_column(String, nullable=False)
    reference_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    performed_by: Mapped[str] = mapped_column(String(100), nullable=False)
    action_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    previous_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "reference_type IN ('Batch', 'Individual')",
            name="finance_audit_reference_type_check",
        ),
        CheckConstraint(
            "action IN ('Approved', 'Rejected', 'Paid')",
            name="finance_audit_action_check",
        ),
        Index("ix_finance_audit_reference", "reference_type", "reference_id"),
        Index("ix_finance_audit_performed_by", "performed_by"),
    )


@event.listens_for(FinanceApprovalAuditEntry, "before_update")
def _reject_audit_update(mapper: Any, connection: Any, target: FinanceApprovalAuditEntry) -> None:
    raise ImmutableEntryError(f"Audit entry {target.audit_id} is append-only and cannot be updated")


@event.listens_for(FinanceApprovalAuditEntry, "before_delete")
def _reject_audit_delete(mapper: Any, connection: Any, target: FinanceApprovalAuditEntry) -> None:
    raise ImmutableEntryError(f"Audit entry {target.audit_id} is append-only and cannot be deleted")
