"""Batch aggregator - derives a batch's status and counters from its records."""

from __future__ import annotations

import logging
from collections import Counter
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_approval.exceptions import InconsistentBatchError, NotFoundError
from payroll_approval.models import PayrollBatch, PayrollRecord, utcnow
from payroll_approval.services.state_machine import BatchStatus, PayrollRecordStatus
from payroll_approval.services.types import BatchCounts

logger = logging.getLogger(__name__)


def count_statuses(total: int, statuses: Iterable[str]) -> BatchCounts:
    """Tally member statuses into BatchCounts."""
    tally = Counter(str(getattr(s, "value", s)) for s in statuses)
    return BatchCounts(
        total=total,
        approved=tally[PayrollRecordStatus.APPROVED.value],
        rejected=tally[PayrollRecordStatus.REJECTED.value],
        paid=tally[PayrollRecordStatus.PAID.value],
    )


def derive_batch_status(counts: BatchCounts) -> BatchStatus:
    """Derive a batch's status from its member counts.

    First matching rule wins:
    1. every member Paid                 -> Paid
    2. every member Approved             -> Fully_Approved
    3. any member Approved or Paid       -> Partially_Approved
    4. every member Rejected             -> Rejected
    5. otherwise                         -> Pending_Finance_Approval
    """
    if counts.paid == counts.total:
        return BatchStatus.PAID
    if counts.approved == counts.total:
        return BatchStatus.FULLY_APPROVED
    if counts.approved + counts.paid > 0:
        return BatchStatus.PARTIALLY_APPROVED
    if counts.rejected == counts.total:
        return BatchStatus.REJECTED
    return BatchStatus.PENDING_FINANCE_APPROVAL


class BatchAggregator:
    """Keeps PayrollBatch.status, counters and totals in line with its records.

    recompute() must run inside the transaction that changed a member's
    status, after the batch row has been locked, so that it always reads
    the latest committed member statuses.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_batch(self, batch_id: UUID) -> PayrollBatch:
        """Load and row-lock a batch. Raises NotFoundError if unknown."""
        result = await self.session.execute(
            select(PayrollBatch)
            .where(PayrollBatch.batch_id == batch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        batch = result.scalar_one_or_none()
        if batch is None:
            raise NotFoundError("Payroll batch", batch_id)
        return batch

    async def recompute(self, batch_id: UUID) -> PayrollBatch:
        """Re-derive status, counters and totals for a batch and persist them."""
        batch = await self.lock_batch(batch_id)

        result = await self.session.execute(
            select(
                PayrollRecord.status,
                PayrollRecord.gross_salary,
                PayrollRecord.net_salary,
            ).where(PayrollRecord.batch_id == batch_id)
        )
        rows = result.all()

        if len(rows) != batch.total_employees:
            # Records are never deleted, so this means the batch was built wrong
            raise InconsistentBatchError(batch_id, len(rows), batch.total_employees)

        counts = count_statuses(batch.total_employees, (row.status for row in rows))
        status = derive_batch_status(counts)
        previous_status = batch.status

        batch.approved_count = counts.approved
        batch.rejected_count = counts.rejected
        batch.paid_count = counts.paid
        batch.total_gross_amount = sum((Decimal(row.gross_salary) for row in rows), Decimal("0.00"))
        batch.total_net_amount = sum((Decimal(row.net_salary) for row in rows), Decimal("0.00"))
        batch.status = status.value
        batch.updated_at = utcnow()
        await self.session.flush()

        if previous_status != status.value:
            logger.info(
                "Payroll batch %s status %s -> %s (approved=%d rejected=%d paid=%d of %d)",
                batch_id,
                previous_status,
                status.value,
                counts.approved,
                counts.rejected,
                counts.paid,
                counts.total,
            )
            if status == BatchStatus.PAID:
                logger.info("Payroll batch %s fully paid", batch_id)

        return batch
