"""ORM models for the payroll approval core."""

from payroll_approval.models.base import Base, TimestampMixin, utcnow
from payroll_approval.models.payroll import PayrollBatch, PayrollRecord
from payroll_approval.models.approval import FinanceApprovalAuditEntry, PaymentRejection

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "PayrollBatch",
    "PayrollRecord",
    "PaymentRejection",
    "FinanceApprovalAuditEntry",
]
