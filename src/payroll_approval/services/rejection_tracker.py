"""Rejection tracker - why a payroll record was rejected and what HR did about it."""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from payroll_approval.exceptions import AlreadyResolvedError, NotFoundError, ValidationError
from payroll_approval.models import PaymentRejection, PayrollRecord, utcnow
from payroll_approval.services.state_machine import InvalidTransitionError, PayrollRecordStatus
from payroll_approval.services.types import RejectionType

logger = logging.getLogger(__name__)


class RejectionTracker:
    """Records rejection events and their notification/resolution state.

    Every rejection event creates a new row; existing rows only ever have
    their ``hr_notified`` and ``resolved`` flags flipped.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record_rejection(
        self,
        record_id: UUID,
        batch_id: UUID,
        rejection_type: RejectionType | str,
        reason: str,
        amount: Decimal,
        actor: str,
    ) -> PaymentRejection:
        """Create the rejection row for a record that is being rejected.

        Must run in the same transaction as the record's transition into
        Rejected.
        """
        record = await self.session.get(PayrollRecord, record_id)
        if record is None:
            raise NotFoundError("Payroll record", record_id)
        if record.batch_id != batch_id:
            raise ValidationError(f"record {record_id} does not belong to batch {batch_id}")
        if record.status != PayrollRecordStatus.REJECTED:
            raise InvalidTransitionError(
                record.status,
                PayrollRecordStatus.REJECTED,
                "a rejection can only be recorded for a record being rejected",
            )

        rejection = PaymentRejection(
            record_id=record_id,
            batch_id=batch_id,
            employee_id=record.employee_id,
            employee_name=record.employee_name,
            rejection_type=RejectionType(rejection_type).value,
            reason=reason,
            amount_rejected=amount,
            rejected_by=actor,
            rejected_at=utcnow(),
        )
        self.session.add(rejection)
        await self.session.flush()
        return rejection

    async def get(self, rejection_id: int, for_update: bool = False) -> PaymentRejection:
        query = select(PaymentRejection).where(PaymentRejection.rejection_id == rejection_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        rejection = result.scalar_one_or_none()
        if rejection is None:
            raise NotFoundError("Payment rejection", rejection_id)
        return rejection

    async def mark_notified(self, rejection_id: int) -> PaymentRejection:
        """Flag that HR has been informed. Calling it again is a no-op."""
        rejection = await self.get(rejection_id, for_update=True)
        if not rejection.hr_notified:
            rejection.hr_notified = True
            rejection.hr_notified_at = utcnow()
            await self.session.flush()
        return rejection

    async def mark_resolved(self, rejection_id: int, actor: str) -> PaymentRejection:
        """Flag the rejection as resolved by ``actor``.

        Raises AlreadyResolvedError, carrying the existing resolution, if the
        rejection was resolved before (including by a concurrent caller).
        """
        rejection = await self.get(rejection_id, for_update=True)
        if rejection.resolved:
            raise AlreadyResolvedError(rejection_id, rejection.resolved_at, rejection.resolved_by)

        resolved_at = utcnow()
        result = await self.session.execute(
            update(PaymentRejection)
            .where(
                PaymentRejection.rejection_id == rejection_id,
                PaymentRejection.resolved.is_(False),
            )
            .values(resolved=True, resolved_at=resolved_at, resolved_by=actor)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            rejection = await self.get(rejection_id, for_update=True)
            raise AlreadyResolvedError(rejection_id, rejection.resolved_at, rejection.resolved_by)

        set_committed_value(rejection, "resolved", True)
        set_committed_value(rejection, "resolved_at", resolved_at)
        set_committed_value(rejection, "resolved_by", actor)

        logger.info("Payment rejection %s resolved by %s", rejection_id, actor)
        return rejection

    async def list_rejections(
        self,
        batch_id: UUID | None = None,
        resolved: bool | None = None,
    ) -> list[PaymentRejection]:
        query = select(PaymentRejection)
        if batch_id is not None:
            query = query.where(PaymentRejection.batch_id == batch_id)
        if resolved is not None:
            query = query.where(PaymentRejection.resolved.is_(resolved))
        query = query.order_by(PaymentRejection.rejection_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())
