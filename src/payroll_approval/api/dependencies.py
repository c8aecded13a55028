"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_approval.database import get_session, init_db
from payroll_approval.services.approval_engine import ApprovalEngine
from payroll_approval.services.record_store import ACTOR_MAX_LENGTH


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with get_session() as session:
        yield session


def get_approval_engine() -> ApprovalEngine:
    """Approval engine bound to the global session factory."""
    _, factory = init_db()
    return ApprovalEngine(factory)


async def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
) -> str:
    """Extract the acting finance officer from the header.

    Authentication happens upstream; the core only records who acted.
    """
    if not x_actor_id or not x_actor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Actor-Id header is required",
        )
    actor = x_actor_id.strip()
    if len(actor) > ACTOR_MAX_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"X-Actor-Id must be at most {ACTOR_MAX_LENGTH} characters",
        )
    return actor


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Engine = Annotated[ApprovalEngine, Depends(get_approval_engine)]
Actor = Annotated[str, Depends(get_actor)]
