"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payroll_approval.services.types import PayrollLineItem


# ============================================================================
# Batch creation
# ============================================================================


class PayrollLineItemIn(BaseModel):
    """One employee's computed payroll amounts."""

    employee_id: str = Field(min_length=1, max_length=50)
    employee_name: str = Field(min_length=1, max_length=255)
    pay_period_start: date
    pay_period_end: date
    basic_salary: Decimal
    allowances: Decimal = Decimal("0.00")
    gross_salary: Decimal
    tax: Decimal = Decimal("0.00")
    statutory_deductions: Decimal = Decimal("0.00")
    other_deductions: Decimal = Decimal("0.00")
    total_deductions: Decimal
    net_salary: Decimal

    def to_line_item(self) -> PayrollLineItem:
        return PayrollLineItem(**self.model_dump())


class PayrollBatchCreate(BaseModel):
    """Schema for creating a payroll batch."""

    period: str = Field(description="Pay period in YYYY-MM format")
    items: list[PayrollLineItemIn]


class PayrollBatchCreated(BaseModel):
    batch_id: UUID
    record_ids: list[UUID]
    status: str


# ============================================================================
# Batch status
# ============================================================================


class BatchStatusResponse(BaseModel):
    """Derived status, counts and totals of a batch."""

    model_config = ConfigDict(from_attributes=True)

    batch_id: UUID
    period: str
    status: str
    total_employees: int
    approved_count: int
    rejected_count: int
    paid_count: int
    pending_count: int
    total_gross_amount: Decimal
    total_net_amount: Decimal


class StatusBucketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    count: int
    amount: Decimal


class FinancialImpactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: UUID
    pending: StatusBucketResponse
    approved: StatusBucketResponse
    rejected: StatusBucketResponse
    paid: StatusBucketResponse
    cash_flow_impact: Decimal


class PayrollRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    record_id: UUID
    batch_id: UUID
    employee_id: str
    employee_name: str
    period: str
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    status: str
    approved_by: str | None = None
    rejected_by: str | None = None
    rejection_reason: str | None = None
    paid_by: str | None = None
    payment_reference: str | None = None


# ============================================================================
# Actions
# ============================================================================


class RejectRequest(BaseModel):
    reason: str = Field(min_length=1)


class BatchApproveRequest(BaseModel):
    notes: str | None = None


class RecordApproveRequest(BaseModel):
    record_ids: list[UUID] = Field(min_length=1)


class RecordRejection(BaseModel):
    record_id: UUID
    reason: str = Field(min_length=1)


class RecordRejectRequest(BaseModel):
    """Per-record rejections; each record carries its own reason."""

    rejections: list[RecordRejection] = Field(min_length=1)


class MarkPaidRequest(BaseModel):
    payment_reference: str | None = Field(default=None, max_length=100)


class TransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    record_id: UUID
    batch_id: UUID
    previous_status: str
    new_status: str
    batch_status: str
    rejection_id: int | None = None


class BatchActionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: UUID
    affected: int
    skipped: int
    batch_status: str
    affected_record_ids: list[UUID]


# ============================================================================
# Audit and rejections
# ============================================================================


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    audit_id: int
    reference_type: str
    reference_id: UUID
    action: str
    performed_by: str
    action_at: datetime
    reason: str | None = None
    amount: Decimal | None = None
    previous_status: str | None = None
    new_status: str | None = None


class PaymentRejectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rejection_id: int
    record_id: UUID
    batch_id: UUID
    employee_id: str
    employee_name: str
    rejection_type: str
    reason: str
    amount_rejected: Decimal
    rejected_by: str
    rejected_at: datetime
    hr_notified: bool
    hr_notified_at: datetime | None = None
    resolved: bool
    resolved_at: datetime | None = None
    resolved_by: str | None = None


class ErrorResponse(BaseModel):
    """Error body returned for every failed call."""

    detail: str
    code: str
