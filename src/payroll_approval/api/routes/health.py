"""Health and readiness endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payroll_approval.api.dependencies import DbSession
from payroll_approval.models import Base

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    database: str


class ReadinessResponse(BaseModel):
    status: str
    missing_tables: list[str] = []


def _missing_tables(session: Session) -> list[str]:
    present = set(inspect(session.connection()).get_table_names())
    return sorted(name for name in Base.metadata.tables if name not in present)


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, response: Response) -> HealthResponse:
    """Report whether the database answers queries."""
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError:
        db_status = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(db: DbSession, response: Response) -> ReadinessResponse:
    """Ready once every payroll approval table exists.

    Answers 503 while the schema is missing, e.g. before ``init-db`` ran.
    """
    try:
        missing = await db.run_sync(_missing_tables)
    except SQLAlchemyError:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="unavailable")

    if missing:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="not_ready", missing_tables=missing)
    return ReadinessResponse(status="ready")
