"""Payroll record transition endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from payroll_approval.api.dependencies import Actor, Engine
from payroll_approval.api.schemas import (
    AuditEntryResponse,
    ErrorResponse,
    MarkPaidRequest,
    PayrollRecordResponse,
    RejectRequest,
    TransitionResponse,
)

router = APIRouter(prefix="/payroll-records", tags=["payroll-records"])

TRANSITION_ERRORS = {404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


@router.get(
    "/{record_id}",
    response_model=PayrollRecordResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_record(
    engine: Engine,
    record_id: Annotated[UUID, Path()],
) -> PayrollRecordResponse:
    record = await engine.get_record(record_id)
    return PayrollRecordResponse.model_validate(record)


@router.get(
    "/{record_id}/audit",
    response_model=list[AuditEntryResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_record_audit_trail(
    engine: Engine,
    record_id: Annotated[UUID, Path()],
) -> list[AuditEntryResponse]:
    entries = await engine.get_record_audit_trail(record_id)
    return [AuditEntryResponse.model_validate(e) for e in entries]


@router.post("/{record_id}/approve", response_model=TransitionResponse, responses=TRANSITION_ERRORS)
async def approve_record(
    engine: Engine,
    actor: Actor,
    record_id: Annotated[UUID, Path()],
) -> TransitionResponse:
    result = await engine.approve_record(record_id, actor)
    return TransitionResponse.model_validate(result)


@router.post("/{record_id}/reject", response_model=TransitionResponse, responses=TRANSITION_ERRORS)
async def reject_record(
    engine: Engine,
    actor: Actor,
    record_id: Annotated[UUID, Path()],
    payload: RejectRequest,
) -> TransitionResponse:
    result = await engine.reject_record(record_id, actor, payload.reason)
    return TransitionResponse.model_validate(result)


@router.post("/{record_id}/pay", response_model=TransitionResponse, responses=TRANSITION_ERRORS)
async def mark_paid(
    engine: Engine,
    actor: Actor,
    record_id: Annotated[UUID, Path()],
    payload: MarkPaidRequest | None = None,
) -> TransitionResponse:
    result = await engine.mark_paid(
        record_id,
        actor,
        payment_reference=payload.payment_reference if payload else None,
    )
    return TransitionResponse.model_validate(result)
