"""Tests for payment rejection notification and resolution."""

from decimal import Decimal

import pytest

from payroll_approval.exceptions import AlreadyResolvedError, NotFoundError
from payroll_approval.services.rejection_tracker import RejectionTracker
from payroll_approval.services.state_machine import InvalidTransitionError

OFFICER = "finance.officer"


@pytest.fixture
async def rejection_id(approval, batch) -> int:
    result = await approval.reject_record(batch.record_ids[0], OFFICER, "Incorrect allowance")
    return result.rejection_id


class TestNotification:
    async def test_mark_notified(self, approval, rejection_id):
        rejection = await approval.mark_rejection_notified(rejection_id)

        assert rejection.hr_notified is True
        assert rejection.hr_notified_at is not None
        assert rejection.resolved is False

    async def test_mark_notified_is_idempotent(self, approval, rejection_id):
        first = await approval.mark_rejection_notified(rejection_id)
        second = await approval.mark_rejection_notified(rejection_id)

        assert second.hr_notified is True
        # SQLite hands datetimes back without tzinfo
        assert second.hr_notified_at.replace(tzinfo=None) == first.hr_notified_at.replace(
            tzinfo=None
        )

    async def test_unknown_rejection(self, approval):
        with pytest.raises(NotFoundError):
            await approval.mark_rejection_notified(9999)


class TestResolution:
    async def test_resolve(self, approval, rejection_id):
        rejection = await approval.resolve_rejection(rejection_id, "hr.partner")

        assert rejection.resolved is True
        assert rejection.resolved_by == "hr.partner"
        assert rejection.resolved_at is not None

    async def test_resolve_twice(self, approval, rejection_id):
        await approval.resolve_rejection(rejection_id, "hr.partner")

        with pytest.raises(AlreadyResolvedError) as exc_info:
            await approval.resolve_rejection(rejection_id, "someone.else")

        assert exc_info.value.rejection_id == rejection_id
        assert exc_info.value.resolved_by == "hr.partner"
        assert exc_info.value.code == "ALREADY_RESOLVED"

    async def test_resolving_does_not_reopen_the_record(self, approval, batch, rejection_id):
        await approval.resolve_rejection(rejection_id, "hr.partner")

        record = await approval.get_record(batch.record_ids[0])
        assert record.status == "Rejected"
        with pytest.raises(InvalidTransitionError):
            await approval.approve_record(batch.record_ids[0], OFFICER)

    async def test_list_filters(self, approval, batch, rejection_id):
        await approval.reject_record(batch.record_ids[1], OFFICER, "Wrong grade")
        await approval.resolve_rejection(rejection_id, "hr.partner")

        unresolved = await approval.list_rejections(resolved=False)
        resolved = await approval.list_rejections(resolved=True)
        everything = await approval.list_rejections(batch_id=batch.batch_id)

        assert [r.record_id for r in unresolved] == [batch.record_ids[1]]
        assert [r.rejection_id for r in resolved] == [rejection_id]
        assert [r.rejection_id for r in everything] == sorted(r.rejection_id for r in everything)
        assert len(everything) == 2


class TestRecordRejection:
    async def test_only_for_rejected_records(self, session, batch):
        with pytest.raises(InvalidTransitionError):
            await RejectionTracker(session).record_rejection(
                record_id=batch.record_ids[0],
                batch_id=batch.batch_id,
                rejection_type="Individual",
                reason="Not rejected yet",
                amount=Decimal("4400.00"),
                actor=OFFICER,
            )
