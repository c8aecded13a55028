"""Append-only finance approval audit log."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_approval.models import FinanceApprovalAuditEntry, PayrollRecord, utcnow
from payroll_approval.services.state_machine import FinanceAction
from payroll_approval.services.types import ReferenceType


class AuditLog:
    """Writes and reads FinanceApprovalAuditEntry rows.

    Entries are only ever inserted; the model rejects updates and deletes.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        reference_type: ReferenceType | str,
        reference_id: UUID,
        action: FinanceAction | str,
        actor: str,
        previous_status: str | None,
        new_status: str | None,
        amount: Decimal | None = None,
        reason: str | None = None,
    ) -> FinanceApprovalAuditEntry:
        entry = FinanceApprovalAuditEntry(
            reference_type=ReferenceType(reference_type).value,
            reference_id=reference_id,
            action=FinanceAction(action).value,
            performed_by=actor,
            action_at=utcnow(),
            reason=reason,
            amount=amount,
            previous_status=previous_status,
            new_status=new_status,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def entries_for(
        self,
        reference_type: ReferenceType | str,
        reference_id: UUID,
    ) -> list[FinanceApprovalAuditEntry]:
        result = await self.session.execute(
            select(FinanceApprovalAuditEntry)
            .where(
                FinanceApprovalAuditEntry.reference_type == ReferenceType(reference_type).value,
                FinanceApprovalAuditEntry.reference_id == reference_id,
            )
            .order_by(FinanceApprovalAuditEntry.audit_id)
        )
        return list(result.scalars().all())

    async def entries_for_batch(self, batch_id: UUID) -> list[FinanceApprovalAuditEntry]:
        """Batch-level entries plus entries for every member record, in write order."""
        member_ids = select(PayrollRecord.record_id).where(PayrollRecord.batch_id == batch_id)
        result = await self.session.execute(
            select(FinanceApprovalAuditEntry)
            .where(
                or_(
                    (FinanceApprovalAuditEntry.reference_type == ReferenceType.BATCH.value)
                    & (FinanceApprovalAuditEntry.reference_id == batch_id),
                    (FinanceApprovalAuditEntry.reference_type == ReferenceType.INDIVIDUAL.value)
                    & (FinanceApprovalAuditEntry.reference_id.in_(member_ids)),
                )
            )
            .order_by(FinanceApprovalAuditEntry.audit_id)
        )
        return list(result.scalars().all())
