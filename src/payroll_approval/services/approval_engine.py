"""Approval engine - the entry point for every payroll approval action.

Each public operation runs as one unit of work in its own transaction:

    record transition + rejection row + audit entry + batch recompute

Either all of it commits or none of it does. Writers serialize on the
owning batch's row (SELECT ... FOR UPDATE, BEGIN IMMEDIATE on SQLite), so
the derived batch status always reflects every committed member change.
Transient storage failures (lock timeouts, serialization failures) roll
the unit back and re-run it from the start; a re-run re-reads all state,
so a record another officer has just rejected surfaces as
InvalidTransitionError rather than a second rejection.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Awaitable, Callable, Collection, Mapping, Sequence, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_approval.config import get_settings
from payroll_approval.exceptions import (
    NotFoundError,
    PayrollApprovalError,
    PersistenceError,
    ValidationError,
)
from payroll_approval.models import (
    FinanceApprovalAuditEntry,
    PaymentRejection,
    PayrollBatch,
    PayrollRecord,
    utcnow,
)
from payroll_approval.services.audit_log import AuditLog
from payroll_approval.services.batch_aggregator import BatchAggregator
from payroll_approval.services.record_store import ACTOR_MAX_LENGTH, PayrollRecordStore
from payroll_approval.services.rejection_tracker import RejectionTracker
from payroll_approval.services.state_machine import (
    BatchStatus,
    PayrollRecordStateMachine,
    PayrollRecordStatus,
)
from payroll_approval.services.types import (
    BatchActionResult,
    BatchCreated,
    BatchStatusSummary,
    FinancialImpact,
    PayrollLineItem,
    ReferenceType,
    RejectionType,
    StatusBucket,
    TransitionResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def summarize_batch(batch: PayrollBatch) -> BatchStatusSummary:
    return BatchStatusSummary(
        batch_id=batch.batch_id,
        period=batch.period,
        status=batch.status,
        total_employees=batch.total_employees,
        approved_count=batch.approved_count,
        rejected_count=batch.rejected_count,
        paid_count=batch.paid_count,
        total_gross_amount=batch.total_gross_amount,
        total_net_amount=batch.total_net_amount,
    )


def _require_reason(reason: str | None) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise ValidationError("a rejection reason is required")
    return cleaned


def _require_actor(actor: str | None) -> str:
    cleaned = (actor or "").strip()
    if not cleaned:
        raise ValidationError("an actor is required")
    if len(cleaned) > ACTOR_MAX_LENGTH:
        raise ValidationError(f"actor is longer than {ACTOR_MAX_LENGTH} characters")
    return cleaned


class ApprovalEngine:
    """Orchestrates record store, rejection tracker, audit log and aggregator.

    Operations:
    - create_batch: validate line items and create a batch with its records
    - approve_record / reject_record / mark_paid: single-record transitions
    - approve_batch / reject_batch: all pending records of a batch at once
    - approve_records / reject_records: selected records of one batch
    - get_batch_status, list_batches, get_financial_impact, get_audit_trail
    - list_rejections, mark_rejection_notified, resolve_rejection
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_retries: int | None = None,
    ):
        self.session_factory = session_factory
        if max_retries is None:
            max_retries = get_settings().max_transaction_retries
        self.max_retries = max_retries

    async def _run(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run ``work`` in a fresh transaction, retrying transient failures."""
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self.session_factory() as session:
                    async with session.begin():
                        return await work(session)
            except PayrollApprovalError:
                raise
            except OperationalError as e:
                if attempt > self.max_retries:
                    logger.exception(
                        "%s failed after %d attempts", operation, attempt
                    )
                    raise PersistenceError(
                        f"{operation} could not be committed after {attempt} attempts"
                    ) from e
                logger.warning(
                    "%s hit a transient storage error (attempt %d of %d), retrying: %s",
                    operation,
                    attempt,
                    self.max_retries + 1,
                    e.orig if e.orig is not None else e,
                )
            except SQLAlchemyError as e:
                logger.exception("%s failed with a storage error", operation)
                raise PersistenceError(f"{operation} failed: {e}") from e

    # ------------------------------------------------------------------
    # Batch creation
    # ------------------------------------------------------------------

    async def create_batch(
        self,
        period: str,
        line_items: Sequence[PayrollLineItem],
        actor: str,
    ) -> BatchCreated:
        """Create a batch and its records, all in Pending_Finance_Approval.

        Raises ValidationError if any line item is malformed; nothing is
        written in that case.
        """
        actor = _require_actor(actor)
        line_items = list(line_items)

        async def work(session: AsyncSession) -> BatchCreated:
            batch = PayrollBatch(
                batch_id=uuid4(),
                period=period,
                total_employees=len(line_items),
                total_gross_amount=Decimal("0.00"),
                total_net_amount=Decimal("0.00"),
                status=BatchStatus.PENDING_FINANCE_APPROVAL.value,
                created_by=actor,
            )
            session.add(batch)
            records = await PayrollRecordStore(session).create(
                batch.batch_id, period, line_items, processed_by=actor
            )
            batch = await BatchAggregator(session).recompute(batch.batch_id)
            return BatchCreated(
                batch_id=batch.batch_id,
                record_ids=[r.record_id for r in records],
                status=batch.status,
            )

        created = await self._run("create_batch", work)
        logger.info(
            "Payroll batch %s created for %s with %d records by %s",
            created.batch_id,
            period,
            len(created.record_ids),
            actor,
        )
        return created

    # ------------------------------------------------------------------
    # Single-record transitions
    # ------------------------------------------------------------------

    async def approve_record(self, record_id: UUID, actor: str) -> TransitionResult:
        actor = _require_actor(actor)
        return await self._run(
            "approve_record",
            lambda session: self._transition_record(
                session, record_id, PayrollRecordStatus.APPROVED, actor
            ),
        )

    async def reject_record(self, record_id: UUID, actor: str, reason: str) -> TransitionResult:
        actor = _require_actor(actor)
        reason = _require_reason(reason)
        return await self._run(
            "reject_record",
            lambda session: self._transition_record(
                session, record_id, PayrollRecordStatus.REJECTED, actor, reason=reason
            ),
        )

    async def mark_paid(
        self,
        record_id: UUID,
        actor: str,
        payment_reference: str | None = None,
    ) -> TransitionResult:
        actor = _require_actor(actor)
        return await self._run(
            "mark_paid",
            lambda session: self._transition_record(
                session,
                record_id,
                PayrollRecordStatus.PAID,
                actor,
                payment_reference=payment_reference,
            ),
        )

    async def _transition_record(
        self,
        session: AsyncSession,
        record_id: UUID,
        to_status: PayrollRecordStatus,
        actor: str,
        reason: str | None = None,
        payment_reference: str | None = None,
    ) -> TransitionResult:
        store = PayrollRecordStore(session)
        aggregator = BatchAggregator(session)

        # batch_id never changes, so an unlocked read is enough to find the batch
        record = await store.get(record_id)
        await aggregator.lock_batch(record.batch_id)

        previous_status = await store.set_status(
            record_id,
            to_status,
            actor,
            reason=reason,
            payment_reference=payment_reference,
        )

        rejection_id = None
        if to_status == PayrollRecordStatus.REJECTED:
            rejection = await RejectionTracker(session).record_rejection(
                record_id=record.record_id,
                batch_id=record.batch_id,
                rejection_type=RejectionType.INDIVIDUAL,
                reason=reason,
                amount=record.net_salary,
                actor=actor,
            )
            rejection_id = rejection.rejection_id

        await AuditLog(session).record(
            reference_type=ReferenceType.INDIVIDUAL,
            reference_id=record.record_id,
            action=PayrollRecordStateMachine.action_for(to_status),
            actor=actor,
            previous_status=previous_status,
            new_status=to_status.value,
            amount=record.net_salary,
            reason=reason,
        )

        batch = await aggregator.recompute(record.batch_id)

        return TransitionResult(
            record_id=record.record_id,
            batch_id=record.batch_id,
            previous_status=previous_status,
            new_status=to_status.value,
            batch_status=batch.status,
            rejection_id=rejection_id,
        )

    # ------------------------------------------------------------------
    # Batch and multi-record actions
    # ------------------------------------------------------------------

    async def approve_batch(
        self,
        batch_id: UUID,
        actor: str,
        notes: str | None = None,
    ) -> BatchActionResult:
        """Approve every pending record of a batch; other records are skipped."""
        actor = _require_actor(actor)
        result = await self._run(
            "approve_batch",
            lambda session: self._apply_to_batch(
                session, batch_id, PayrollRecordStatus.APPROVED, actor, notes=notes
            ),
        )
        logger.info(
            "Payroll batch %s approved by %s: %d affected, %d skipped",
            batch_id,
            actor,
            result.affected,
            result.skipped,
        )
        return result

    async def reject_batch(self, batch_id: UUID, actor: str, reason: str) -> BatchActionResult:
        """Reject every pending record of a batch; other records are skipped."""
        actor = _require_actor(actor)
        reason = _require_reason(reason)
        result = await self._run(
            "reject_batch",
            lambda session: self._apply_to_batch(
                session, batch_id, PayrollRecordStatus.REJECTED, actor, reason=reason
            ),
        )
        logger.info(
            "Payroll batch %s rejected by %s: %d affected, %d skipped",
            batch_id,
            actor,
            result.affected,
            result.skipped,
        )
        return result

    async def approve_records(
        self,
        batch_id: UUID,
        record_ids: Collection[UUID],
        actor: str,
    ) -> BatchActionResult:
        """Approve the selected records of one batch in a single transaction.

        Selected records that are no longer pending are skipped. Raises
        NotFoundError if any id is not a record of the batch; nothing is
        written in that case.
        """
        actor = _require_actor(actor)
        if not record_ids:
            raise ValidationError("at least one record must be selected")
        result = await self._run(
            "approve_records",
            lambda session: self._apply_to_batch(
                session,
                batch_id,
                PayrollRecordStatus.APPROVED,
                actor,
                record_ids=record_ids,
            ),
        )
        logger.info(
            "%d records of payroll batch %s approved by %s, %d skipped",
            result.affected,
            batch_id,
            actor,
            result.skipped,
        )
        return result

    async def reject_records(
        self,
        batch_id: UUID,
        reasons: Mapping[UUID, str],
        actor: str,
    ) -> BatchActionResult:
        """Reject the selected records of one batch, each with its own reason.

        Each rejection is tracked as an Individual rejection.
        """
        actor = _require_actor(actor)
        if not reasons:
            raise ValidationError("at least one record must be selected")
        reasons = {record_id: _require_reason(reason) for record_id, reason in reasons.items()}
        result = await self._run(
            "reject_records",
            lambda session: self._apply_to_batch(
                session,
                batch_id,
                PayrollRecordStatus.REJECTED,
                actor,
                record_ids=reasons.keys(),
                reasons=reasons,
            ),
        )
        logger.info(
            "%d records of payroll batch %s rejected by %s, %d skipped",
            result.affected,
            batch_id,
            actor,
            result.skipped,
        )
        return result

    async def _apply_to_batch(
        self,
        session: AsyncSession,
        batch_id: UUID,
        to_status: PayrollRecordStatus,
        actor: str,
        reason: str | None = None,
        notes: str | None = None,
        record_ids: Collection[UUID] | None = None,
        reasons: Mapping[UUID, str] | None = None,
    ) -> BatchActionResult:
        """Move the pending members of a batch to ``to_status``.

        Acts on every member when ``record_ids`` is None, otherwise on the
        selected members only. Batch-level approval or rejection fields and
        the Batch audit entry are written for whole-batch actions only.
        """
        store = PayrollRecordStore(session)
        aggregator = BatchAggregator(session)
        tracker = RejectionTracker(session)
        audit = AuditLog(session)
        action = PayrollRecordStateMachine.action_for(to_status)
        whole_batch = record_ids is None

        batch = await aggregator.lock_batch(batch_id)
        previous_batch_status = batch.status

        members = await store.list_for_batch(batch_id, for_update=True)
        if not whole_batch:
            selected = set(record_ids)
            unknown = selected - {r.record_id for r in members}
            if unknown:
                raise NotFoundError("Payroll record", min(unknown, key=str))
            members = [r for r in members if r.record_id in selected]

        pending = [
            r for r in members if r.status == PayrollRecordStatus.PENDING_FINANCE_APPROVAL
        ]
        rejection_type = RejectionType.BATCH if whole_batch else RejectionType.INDIVIDUAL

        for record in pending:
            record_reason = reasons[record.record_id] if reasons is not None else reason
            previous_status = await store.set_status(
                record.record_id, to_status, actor, reason=record_reason
            )
            if to_status == PayrollRecordStatus.REJECTED:
                await tracker.record_rejection(
                    record_id=record.record_id,
                    batch_id=batch_id,
                    rejection_type=rejection_type,
                    reason=record_reason,
                    amount=record.net_salary,
                    actor=actor,
                )
            await audit.record(
                reference_type=ReferenceType.INDIVIDUAL,
                reference_id=record.record_id,
                action=action,
                actor=actor,
                previous_status=previous_status,
                new_status=to_status.value,
                amount=record.net_salary,
                reason=record_reason,
            )

        batch = await aggregator.recompute(batch_id)

        if whole_batch and pending:
            now = utcnow()
            if to_status == PayrollRecordStatus.APPROVED:
                batch.approved_at = now
                batch.approved_by = actor
                batch.approval_notes = notes
            else:
                batch.rejected_at = now
                batch.rejected_by = actor
                batch.rejection_reason = reason
            batch.updated_at = now
            await session.flush()

            await audit.record(
                reference_type=ReferenceType.BATCH,
                reference_id=batch_id,
                action=action,
                actor=actor,
                previous_status=previous_batch_status,
                new_status=batch.status,
                amount=sum((r.net_salary for r in pending), Decimal("0.00")),
                reason=reason if reason is not None else notes,
            )

        return BatchActionResult(
            batch_id=batch_id,
            affected=len(pending),
            skipped=len(members) - len(pending),
            batch_status=batch.status,
            affected_record_ids=[r.record_id for r in pending],
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_batch_status(self, batch_id: UUID) -> BatchStatusSummary:
        async def work(session: AsyncSession) -> BatchStatusSummary:
            batch = await session.get(PayrollBatch, batch_id)
            if batch is None:
                raise NotFoundError("Payroll batch", batch_id)
            return summarize_batch(batch)

        return await self._run("get_batch_status", work)

    async def get_record(self, record_id: UUID) -> PayrollRecord:
        return await self._run(
            "get_record", lambda session: PayrollRecordStore(session).get(record_id)
        )

    async def list_records(self, batch_id: UUID) -> list[PayrollRecord]:
        async def work(session: AsyncSession) -> list[PayrollRecord]:
            if await session.get(PayrollBatch, batch_id) is None:
                raise NotFoundError("Payroll batch", batch_id)
            return await PayrollRecordStore(session).list_for_batch(batch_id)

        return await self._run("list_records", work)

    async def list_batches(
        self,
        status: str | None = None,
        period: str | None = None,
    ) -> list[BatchStatusSummary]:
        """Batch summaries, newest first."""

        async def work(session: AsyncSession) -> list[BatchStatusSummary]:
            query = select(PayrollBatch)
            if status is not None:
                query = query.where(PayrollBatch.status == status)
            if period is not None:
                query = query.where(PayrollBatch.period == period)
            query = query.order_by(PayrollBatch.created_at.desc(), PayrollBatch.period.desc())
            result = await session.execute(query)
            return [summarize_batch(b) for b in result.scalars().all()]

        return await self._run("list_batches", work)

    async def get_financial_impact(self, batch_id: UUID) -> FinancialImpact:
        """Count and net amount of the batch's records per status."""

        async def work(session: AsyncSession) -> FinancialImpact:
            if await session.get(PayrollBatch, batch_id) is None:
                raise NotFoundError("Payroll batch", batch_id)
            result = await session.execute(
                select(PayrollRecord.status, PayrollRecord.net_salary).where(
                    PayrollRecord.batch_id == batch_id
                )
            )
            buckets: dict[str, StatusBucket] = {s.value: StatusBucket() for s in PayrollRecordStatus}
            for status, net in result.all():
                bucket = buckets[status]
                buckets[status] = StatusBucket(
                    count=bucket.count + 1,
                    amount=bucket.amount + Decimal(net),
                )
            return FinancialImpact(
                batch_id=batch_id,
                pending=buckets[PayrollRecordStatus.PENDING_FINANCE_APPROVAL.value],
                approved=buckets[PayrollRecordStatus.APPROVED.value],
                rejected=buckets[PayrollRecordStatus.REJECTED.value],
                paid=buckets[PayrollRecordStatus.PAID.value],
            )

        return await self._run("get_financial_impact", work)

    async def get_audit_trail(self, batch_id: UUID) -> list[FinanceApprovalAuditEntry]:
        """Audit entries for the batch and its records, in the order written."""

        async def work(session: AsyncSession) -> list[FinanceApprovalAuditEntry]:
            if await session.get(PayrollBatch, batch_id) is None:
                raise NotFoundError("Payroll batch", batch_id)
            return await AuditLog(session).entries_for_batch(batch_id)

        return await self._run("get_audit_trail", work)

    async def get_record_audit_trail(self, record_id: UUID) -> list[FinanceApprovalAuditEntry]:
        async def work(session: AsyncSession) -> list[FinanceApprovalAuditEntry]:
            await PayrollRecordStore(session).get(record_id)
            return await AuditLog(session).entries_for(ReferenceType.INDIVIDUAL, record_id)

        return await self._run("get_record_audit_trail", work)

    # ------------------------------------------------------------------
    # Rejections
    # ------------------------------------------------------------------

    async def list_rejections(
        self,
        batch_id: UUID | None = None,
        resolved: bool | None = None,
    ) -> list[PaymentRejection]:
        return await self._run(
            "list_rejections",
            lambda session: RejectionTracker(session).list_rejections(batch_id, resolved),
        )

    async def mark_rejection_notified(self, rejection_id: int) -> PaymentRejection:
        return await self._run(
            "mark_rejection_notified",
            lambda session: RejectionTracker(session).mark_notified(rejection_id),
        )

    async def resolve_rejection(self, rejection_id: int, actor: str) -> PaymentRejection:
        actor = _require_actor(actor)
        return await self._run(
            "resolve_rejection",
            lambda session: RejectionTracker(session).mark_resolved(rejection_id, actor),
        )
