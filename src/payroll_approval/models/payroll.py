"""Payroll batch and payroll record models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_approval.models.base import Base, TimestampMixin, utcnow

Money = Numeric(15, 2)


# ===== Batches =====


class PayrollBatch(Base, TimestampMixin):
    """A set of payroll records generated together for one pay period.

    ``status`` and the three counters are derived from the member records
    by the batch aggregator and are never set directly by callers.
    """

    __tablename__ = "payroll_batch"

    batch_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    total_employees: Mapped[int] = mapped_column(Integer, nullable=False)
    total_gross_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total_net_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="Pending_Finance_Approval"
    )

    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    approved_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rejected_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    paid_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending_Finance_Approval', 'Partially_Approved', "
            "'Fully_Approved', 'Rejected', 'Paid')",
            name="payroll_batch_status_check",
        ),
        CheckConstraint("total_employees > 0", name="payroll_batch_non_empty_check"),
        CheckConstraint(
            "approved_count + rejected_count + paid_count <= total_employees",
            name="payroll_batch_counts_check",
        ),
        Index("ix_payroll_batch_period_status", "period", "status"),
    )

    # Relationships
    records: Mapped[list[PayrollRecord]] = relationship(
        back_populates="batch",
        order_by="PayrollRecord.employee_id",
    )


# ===== Records =====


class PayrollRecord(Base, TimestampMixin):
    """One employee's payroll line for a batch.

    Records are never deleted; rejected and paid records stay for audit.
    """

    __tablename__ = "payroll_record"

    record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    batch_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_batch.batch_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[str] = mapped_column(String(50), nullable=False)
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    pay_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    pay_period_end: Mapped[date] = mapped_column(Date, nullable=False)

    # Salary components
    basic_salary: Mapped[Decimal] = mapped_column(Money, nullable=False)
    allowances: Mapped[Decimal] = mapped_column(Money, nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(Money, nullable=False)

    # Deductions
    tax: Mapped[Decimal] = mapped_column(Money, nullable=False)
    statutory_deductions: Mapped[Decimal] = mapped_column(Money, nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Money, nullable=False)

    net_salary: Mapped[Decimal] = mapped_column(Money, nullable=False)

    status: Mapped[str] = mapped_column(
        String, nullable=False, default="Pending_Finance_Approval"
    )

    processed_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    processed_by: Mapped[str] = mapped_column(String(100), nullable=False)

    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        UniqueConstraint("batch_id", "employee_id", name="payroll_record_batch_employee_unique"),
        CheckConstraint(
            "status IN ('Pending_Finance_Approval', 'Approved', 'Rejected', 'Paid')",
            name="payroll_record_status_check",
        ),
        CheckConstraint(
            "pay_period_end >= pay_period_start",
            name="payroll_record_period_dates_check",
        ),
        CheckConstraint(
            "basic_salary >= 0 AND allowances >= 0 AND tax >= 0 "
            "AND statutory_deductions >= 0 AND other_deductions >= 0 "
            "AND net_salary >= 0",
            name="payroll_record_non_negative_check",
        ),
        Index("ix_payroll_record_employee_period", "employee_id", "period"),
        Index("ix_payroll_record_batch_status", "batch_id", "status"),
    )

    # Relationships
    batch: Mapped[PayrollBatch] = relationship(back_populates="records")
