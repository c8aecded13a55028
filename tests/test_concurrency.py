"""Concurrent finance officers acting on the same batch.

Each call runs in its own session and connection, so these exercise the
database-level serialization rather than in-process ordering.
"""

import asyncio

from payroll_approval.services.state_machine import InvalidTransitionError
from payroll_approval.services.types import TransitionResult


class TestConcurrentActions:
    async def test_concurrent_rejections_of_one_record(self, approval, batch):
        record_id = batch.record_ids[0]

        results = await asyncio.gather(
            approval.reject_record(record_id, "officer.a", "Duplicate entry"),
            approval.reject_record(record_id, "officer.b", "Wrong amount"),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, TransitionResult)]
        failures = [r for r in results if isinstance(r, InvalidTransitionError)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert failures[0].from_status == "Rejected"

        assert len(await approval.list_rejections(batch_id=batch.batch_id)) == 1
        assert len(await approval.get_record_audit_trail(record_id)) == 1
        summary = await approval.get_batch_status(batch.batch_id)
        assert summary.rejected_count == 1

    async def test_concurrent_approval_and_rejection_of_one_record(self, approval, batch):
        record_id = batch.record_ids[0]

        results = await asyncio.gather(
            approval.approve_record(record_id, "officer.a"),
            approval.reject_record(record_id, "officer.b", "Hold payment"),
            return_exceptions=True,
        )

        assert not any(
            isinstance(r, Exception) and not isinstance(r, InvalidTransitionError)
            for r in results
        )
        record = await approval.get_record(record_id)
        entries = await approval.get_record_audit_trail(record_id)
        # Either order is valid; the trail must match the final status
        assert entries[-1].new_status == record.status
        assert entries[0].previous_status == "Pending_Finance_Approval"

    async def test_concurrent_approvals_of_different_records(self, approval, batch):
        results = await asyncio.gather(
            *(approval.approve_record(record_id, "officer.a") for record_id in batch.record_ids)
        )

        assert all(r.new_status == "Approved" for r in results)
        summary = await approval.get_batch_status(batch.batch_id)
        assert summary.status == "Fully_Approved"
        assert summary.approved_count == 3

    async def test_batch_approval_races_record_rejection(self, approval, batch):
        await asyncio.gather(
            approval.approve_batch(batch.batch_id, "officer.a"),
            approval.reject_record(batch.record_ids[0], "officer.b", "Wrong bank"),
            return_exceptions=True,
        )

        records = await approval.list_records(batch.batch_id)
        summary = await approval.get_batch_status(batch.batch_id)
        assert summary.approved_count == sum(r.status == "Approved" for r in records)
        assert summary.rejected_count == sum(r.status == "Rejected" for r in records)
        assert summary.pending_count == 0
