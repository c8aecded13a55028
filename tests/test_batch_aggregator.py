"""Tests for batch status derivation."""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, strategies as st
from sqlalchemy import update

from payroll_approval.exceptions import InconsistentBatchError, NotFoundError
from payroll_approval.models import PayrollBatch
from payroll_approval.services.batch_aggregator import (
    BatchAggregator,
    count_statuses,
    derive_batch_status,
)
from payroll_approval.services.state_machine import BatchStatus, PayrollRecordStatus

P = PayrollRecordStatus.PENDING_FINANCE_APPROVAL.value
A = PayrollRecordStatus.APPROVED.value
R = PayrollRecordStatus.REJECTED.value
D = PayrollRecordStatus.PAID.value


def derive(statuses):
    return derive_batch_status(count_statuses(len(statuses), statuses))


class TestDeriveBatchStatus:
    @pytest.mark.parametrize(
        "statuses,expected",
        [
            ([P, P, P], BatchStatus.PENDING_FINANCE_APPROVAL),
            ([A, A, A], BatchStatus.FULLY_APPROVED),
            ([D, D, D], BatchStatus.PAID),
            ([R, R, R], BatchStatus.REJECTED),
            ([A, P, P], BatchStatus.PARTIALLY_APPROVED),
            ([A, A, R], BatchStatus.PARTIALLY_APPROVED),
            ([D, R, R], BatchStatus.PARTIALLY_APPROVED),
            ([A, D, D], BatchStatus.PARTIALLY_APPROVED),
            ([R, P, P], BatchStatus.PENDING_FINANCE_APPROVAL),
            ([R, R, P], BatchStatus.PENDING_FINANCE_APPROVAL),
        ],
    )
    def test_rules(self, statuses, expected):
        assert derive(statuses) == expected

    def test_single_record_batch(self):
        assert derive([P]) == BatchStatus.PENDING_FINANCE_APPROVAL
        assert derive([A]) == BatchStatus.FULLY_APPROVED
        assert derive([R]) == BatchStatus.REJECTED
        assert derive([D]) == BatchStatus.PAID

    def test_count_statuses_accepts_enum_members(self):
        counts = count_statuses(
            4,
            [
                PayrollRecordStatus.APPROVED,
                PayrollRecordStatus.REJECTED,
                PayrollRecordStatus.PAID,
                PayrollRecordStatus.PENDING_FINANCE_APPROVAL,
            ],
        )
        assert (counts.approved, counts.rejected, counts.paid, counts.pending) == (1, 1, 1, 1)


statuses_strategy = st.lists(st.sampled_from([P, A, R, D]), min_size=1, max_size=30)


class TestDeriveProperties:
    @given(st.data())
    def test_order_of_members_does_not_matter(self, data):
        statuses = data.draw(statuses_strategy)
        shuffled = data.draw(st.permutations(statuses))
        assert derive(statuses) == derive(shuffled)

    @given(statuses_strategy)
    def test_counts_add_up(self, statuses):
        counts = count_statuses(len(statuses), statuses)
        assert counts.approved + counts.rejected + counts.paid + counts.pending == len(statuses)
        assert counts.pending == statuses.count(P)

    @given(statuses_strategy)
    def test_paid_only_when_every_member_paid(self, statuses):
        assert (derive(statuses) == BatchStatus.PAID) == all(s == D for s in statuses)

    @given(statuses_strategy)
    def test_rejected_only_when_every_member_rejected(self, statuses):
        assert (derive(statuses) == BatchStatus.REJECTED) == all(s == R for s in statuses)


class TestBatchAggregator:
    async def test_recompute_unknown_batch(self, session):
        with pytest.raises(NotFoundError):
            await BatchAggregator(session).recompute(uuid4())

    async def test_recompute_sets_totals(self, session, batch):
        aggregated = await BatchAggregator(session).recompute(batch.batch_id)

        assert aggregated.total_employees == 3
        assert aggregated.total_gross_amount == Decimal("19500.00")
        assert aggregated.total_net_amount == Decimal("16200.00")
        assert aggregated.status == BatchStatus.PENDING_FINANCE_APPROVAL.value
        assert (aggregated.approved_count, aggregated.rejected_count, aggregated.paid_count) == (
            0,
            0,
            0,
        )

    async def test_recompute_rejects_miscounted_batch(self, session, batch):
        await session.execute(
            update(PayrollBatch)
            .where(PayrollBatch.batch_id == batch.batch_id)
            .values(total_employees=4)
        )

        with pytest.raises(InconsistentBatchError) as exc_info:
            await BatchAggregator(session).recompute(batch.batch_id)

        assert exc_info.value.code == "INCONSISTENT_BATCH"
        assert (exc_info.value.record_count, exc_info.value.total_employees) == (3, 4)
