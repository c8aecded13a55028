"""Payroll record store - validated creation and status transitions."""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from payroll_approval.exceptions import NotFoundError, ValidationError
from payroll_approval.models import PayrollRecord, utcnow
from payroll_approval.services.state_machine import (
    InvalidTransitionError,
    PayrollRecordStateMachine,
    PayrollRecordStatus,
)
from payroll_approval.services.types import PayrollLineItem

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# Numeric(15, 2) holds at most 13 integer digits
MAX_AMOUNT = Decimal("1e13")
EMPLOYEE_ID_MAX_LENGTH = 50
EMPLOYEE_NAME_MAX_LENGTH = 255
PAYMENT_REFERENCE_MAX_LENGTH = 100
ACTOR_MAX_LENGTH = 100
PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def to_amount(value: Any, field_name: str) -> Decimal:
    """Convert a caller-supplied amount to a two-place Decimal.

    Raises ValidationError for non-numeric, non-finite, negative or
    sub-cent values, and for values too large to store.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field_name} is not a valid amount: {value!r}")

    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a finite amount")
    if amount < 0:
        raise ValidationError(f"{field_name} must not be negative (got {amount})")
    if amount >= MAX_AMOUNT:
        raise ValidationError(f"{field_name} must be below {MAX_AMOUNT:,.0f} (got {amount})")
    if amount != amount.quantize(CENT):
        raise ValidationError(f"{field_name} has more than two decimal places (got {amount})")
    return amount.quantize(CENT)


def validate_line_item(item: PayrollLineItem) -> dict[str, Decimal]:
    """Validate one line item's amounts and identities.

    Returns the normalized amounts keyed by field name. Every problem found
    is reported together in a single ValidationError.
    """
    errors: list[str] = []
    amounts: dict[str, Decimal] = {}
    label = f"employee {item.employee_id or '?'}"

    if not item.employee_id:
        errors.append("employee_id is required")
    elif len(item.employee_id) > EMPLOYEE_ID_MAX_LENGTH:
        errors.append(f"employee_id is longer than {EMPLOYEE_ID_MAX_LENGTH} characters")
    if not item.employee_name:
        errors.append(f"{label}: employee_name is required")
    elif len(item.employee_name) > EMPLOYEE_NAME_MAX_LENGTH:
        errors.append(
            f"{label}: employee_name is longer than {EMPLOYEE_NAME_MAX_LENGTH} characters"
        )
    if item.pay_period_end < item.pay_period_start:
        errors.append(f"{label}: pay_period_end is before pay_period_start")

    for name in PayrollLineItem.MONEY_FIELDS:
        try:
            amounts[name] = to_amount(getattr(item, name), name)
        except ValidationError as e:
            errors.extend(f"{label}: {msg}" for msg in e.errors)

    if errors:
        raise ValidationError(errors)

    gross = amounts["basic_salary"] + amounts["allowances"]
    if amounts["gross_salary"] != gross:
        errors.append(
            f"{label}: gross_salary {amounts['gross_salary']} != "
            f"basic_salary + allowances ({gross})"
        )

    deductions = amounts["tax"] + amounts["statutory_deductions"] + amounts["other_deductions"]
    if amounts["total_deductions"] != deductions:
        errors.append(
            f"{label}: total_deductions {amounts['total_deductions']} != "
            f"tax + statutory_deductions + other_deductions ({deductions})"
        )

    net = amounts["gross_salary"] - amounts["total_deductions"]
    if amounts["net_salary"] != net:
        errors.append(
            f"{label}: net_salary {amounts['net_salary']} != "
            f"gross_salary - total_deductions ({net})"
        )

    if errors:
        raise ValidationError(errors)
    return amounts


class PayrollRecordStore:
    """Durable storage and status transitions of individual payroll records.

    The store never creates batches or recomputes aggregates; the approval
    engine owns those steps and the surrounding transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        batch_id: UUID,
        period: str,
        line_items: Sequence[PayrollLineItem],
        processed_by: str,
    ) -> list[PayrollRecord]:
        """Validate and persist a batch's records in Pending_Finance_Approval.

        Nothing is written unless every line item is valid.
        """
        if not PERIOD_PATTERN.match(period or ""):
            raise ValidationError(f"period must be in YYYY-MM format (got {period!r})")
        if not line_items:
            raise ValidationError("a payroll batch needs at least one line item")

        errors: list[str] = []
        validated: list[tuple[PayrollLineItem, dict[str, Decimal]]] = []
        seen: set[str] = set()
        for item in line_items:
            if item.employee_id in seen:
                errors.append(f"employee {item.employee_id} appears more than once")
                continue
            seen.add(item.employee_id)
            try:
                validated.append((item, validate_line_item(item)))
            except ValidationError as e:
                errors.extend(e.errors)

        if errors:
            raise ValidationError(errors)

        processed_at = utcnow()
        records = [
            PayrollRecord(
                batch_id=batch_id,
                employee_id=item.employee_id,
                employee_name=item.employee_name,
                period=period,
                pay_period_start=item.pay_period_start,
                pay_period_end=item.pay_period_end,
                status=PayrollRecordStatus.PENDING_FINANCE_APPROVAL.value,
                processed_at=processed_at,
                processed_by=processed_by,
                **amounts,
            )
            for item, amounts in validated
        ]
        self.session.add_all(records)
        await self.session.flush()
        return records

    async def get(self, record_id: UUID, for_update: bool = False) -> PayrollRecord:
        """Load a record, optionally locking its row.

        Raises NotFoundError if the record does not exist.
        """
        query = select(PayrollRecord).where(PayrollRecord.record_id == record_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("Payroll record", record_id)
        return record

    async def list_for_batch(
        self,
        batch_id: UUID,
        status: str | None = None,
        for_update: bool = False,
    ) -> list[PayrollRecord]:
        query = select(PayrollRecord).where(PayrollRecord.batch_id == batch_id)
        if status is not None:
            query = query.where(PayrollRecord.status == status)
        query = query.order_by(PayrollRecord.employee_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def set_status(
        self,
        record_id: UUID,
        new_status: str,
        actor: str,
        reason: str | None = None,
        payment_reference: str | None = None,
    ) -> str:
        """Move a record to ``new_status`` and return its previous status.

        The write is a compare-and-set on the status read under the row
        lock, so a concurrent transition that committed first turns this
        call into an InvalidTransitionError instead of a second transition.
        """
        new_status = PayrollRecordStatus(new_status).value
        record = await self.get(record_id, for_update=True)
        previous_status = record.status

        PayrollRecordStateMachine.validate_transition(previous_status, new_status)

        if new_status == PayrollRecordStatus.REJECTED and not (reason and reason.strip()):
            raise ValidationError("a rejection reason is required")
        if payment_reference is not None and len(payment_reference) > PAYMENT_REFERENCE_MAX_LENGTH:
            raise ValidationError(
                f"payment_reference is longer than {PAYMENT_REFERENCE_MAX_LENGTH} characters"
            )

        now = utcnow()
        values: dict[str, Any] = {"status": new_status, "updated_at": now}
        if new_status == PayrollRecordStatus.APPROVED:
            values.update(approved_at=now, approved_by=actor)
        elif new_status == PayrollRecordStatus.REJECTED:
            values.update(rejected_at=now, rejected_by=actor, rejection_reason=reason.strip())
        elif new_status == PayrollRecordStatus.PAID:
            values.update(paid_at=now, paid_by=actor, payment_reference=payment_reference)

        result = await self.session.execute(
            update(PayrollRecord)
            .where(
                PayrollRecord.record_id == record_id,
                PayrollRecord.status == previous_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            # Status changed between the locked read and the write
            current = await self.get(record_id, for_update=True)
            raise InvalidTransitionError(
                current.status,
                new_status,
                "record status changed concurrently",
            )

        for key, value in values.items():
            set_committed_value(record, key, value)

        if PayrollRecordStateMachine.is_reversal(previous_status, new_status):
            logger.warning("Payroll record %s: approval reversed by %s", record_id, actor)
        else:
            logger.info(
                "Payroll record %s: %s -> %s by %s",
                record_id,
                previous_status,
                new_status,
                actor,
            )
        return previous_status
