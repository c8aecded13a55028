"""Payment rejection endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from payroll_approval.api.dependencies import Actor, Engine
from payroll_approval.api.schemas import ErrorResponse, PaymentRejectionResponse

router = APIRouter(prefix="/payment-rejections", tags=["payment-rejections"])


@router.get("", response_model=list[PaymentRejectionResponse])
async def list_rejections(
    engine: Engine,
    batch_id: UUID | None = None,
    resolved: bool | None = None,
) -> list[PaymentRejectionResponse]:
    rejections = await engine.list_rejections(batch_id=batch_id, resolved=resolved)
    return [PaymentRejectionResponse.model_validate(r) for r in rejections]


@router.post(
    "/{rejection_id}/notify",
    response_model=PaymentRejectionResponse,
    responses={404: {"model": ErrorResponse}},
)
async def mark_notified(
    engine: Engine,
    rejection_id: Annotated[int, Path()],
) -> PaymentRejectionResponse:
    """Flag that HR has been told about the rejection."""
    rejection = await engine.mark_rejection_notified(rejection_id)
    return PaymentRejectionResponse.model_validate(rejection)


@router.post(
    "/{rejection_id}/resolve",
    response_model=PaymentRejectionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def resolve_rejection(
    engine: Engine,
    actor: Actor,
    rejection_id: Annotated[int, Path()],
) -> PaymentRejectionResponse:
    rejection = await engine.resolve_rejection(rejection_id, actor)
    return PaymentRejectionResponse.model_validate(rejection)
