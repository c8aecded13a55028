"""Payroll batch API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from payroll_approval.api.dependencies import Actor, Engine
from payroll_approval.api.schemas import (
    AuditEntryResponse,
    BatchActionResponse,
    BatchApproveRequest,
    BatchStatusResponse,
    ErrorResponse,
    FinancialImpactResponse,
    PayrollBatchCreate,
    PayrollBatchCreated,
    PayrollRecordResponse,
    RecordApproveRequest,
    RecordRejectRequest,
    RejectRequest,
)
from payroll_approval.exceptions import ValidationError

router = APIRouter(prefix="/payroll-batches", tags=["payroll-batches"])


@router.post(
    "",
    response_model=PayrollBatchCreated,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_batch(
    engine: Engine,
    actor: Actor,
    payload: PayrollBatchCreate,
) -> PayrollBatchCreated:
    """Create a batch of payroll records awaiting finance approval."""
    created = await engine.create_batch(
        payload.period,
        [item.to_line_item() for item in payload.items],
        actor,
    )
    return PayrollBatchCreated(
        batch_id=created.batch_id,
        record_ids=created.record_ids,
        status=created.status,
    )


@router.get("", response_model=list[BatchStatusResponse])
async def list_batches(
    engine: Engine,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    period: str | None = None,
) -> list[BatchStatusResponse]:
    """List batch summaries, newest first."""
    summaries = await engine.list_batches(status=status_filter, period=period)
    return [BatchStatusResponse.model_validate(s) for s in summaries]


@router.get(
    "/{batch_id}",
    response_model=BatchStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_batch_status(
    engine: Engine,
    batch_id: Annotated[UUID, Path()],
) -> BatchStatusResponse:
    summary = await engine.get_batch_status(batch_id)
    return BatchStatusResponse.model_validate(summary)


@router.get(
    "/{batch_id}/records",
    response_model=list[PayrollRecordResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_batch_records(
    engine: Engine,
    batch_id: Annotated[UUID, Path()],
) -> list[PayrollRecordResponse]:
    records = await engine.list_records(batch_id)
    return [PayrollRecordResponse.model_validate(r) for r in records]


@router.get(
    "/{batch_id}/impact",
    response_model=FinancialImpactResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_financial_impact(
    engine: Engine,
    batch_id: Annotated[UUID, Path()],
) -> FinancialImpactResponse:
    impact = await engine.get_financial_impact(batch_id)
    return FinancialImpactResponse.model_validate(impact)


@router.get(
    "/{batch_id}/audit",
    response_model=list[AuditEntryResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_audit_trail(
    engine: Engine,
    batch_id: Annotated[UUID, Path()],
) -> list[AuditEntryResponse]:
    entries = await engine.get_audit_trail(batch_id)
    return [AuditEntryResponse.model_validate(e) for e in entries]


@router.post(
    "/{batch_id}/approve",
    response_model=BatchActionResponse,
    responses={404: {"model": ErrorResponse}},
)
async def approve_batch(
    engine: Engine,
    actor: Actor,
    batch_id: Annotated[UUID, Path()],
    payload: BatchApproveRequest | None = None,
) -> BatchActionResponse:
    """Approve every pending record of the batch."""
    result = await engine.approve_batch(
        batch_id, actor, notes=payload.notes if payload else None
    )
    return BatchActionResponse.model_validate(result)


@router.post(
    "/{batch_id}/reject",
    response_model=BatchActionResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def reject_batch(
    engine: Engine,
    actor: Actor,
    batch_id: Annotated[UUID, Path()],
    payload: RejectRequest,
) -> BatchActionResponse:
    """Reject every pending record of the batch."""
    result = await engine.reject_batch(batch_id, actor, payload.reason)
    return BatchActionResponse.model_validate(result)


@router.post(
    "/{batch_id}/records/approve",
    response_model=BatchActionResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def approve_records(
    engine: Engine,
    actor: Actor,
    batch_id: Annotated[UUID, Path()],
    payload: RecordApproveRequest,
) -> BatchActionResponse:
    """Approve the selected pending records of the batch."""
    result = await engine.approve_records(batch_id, payload.record_ids, actor)
    return BatchActionResponse.model_validate(result)


@router.post(
    "/{batch_id}/records/reject",
    response_model=BatchActionResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def reject_records(
    engine: Engine,
    actor: Actor,
    batch_id: Annotated[UUID, Path()],
    payload: RecordRejectRequest,
) -> BatchActionResponse:
    """Reject the selected pending records of the batch, each with its own reason."""
    reasons = {r.record_id: r.reason for r in payload.rejections}
    if len(reasons) != len(payload.rejections):
        raise ValidationError("each record may be rejected only once per request")
    result = await engine.reject_records(batch_id, reasons, actor)
    return BatchActionResponse.model_validate(result)
