"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from payroll_approval.api.routes import (
    health_router,
    payment_rejections_router,
    payroll_batches_router,
    payroll_records_router,
)
from payroll_approval.config import get_settings
from payroll_approval.database import create_schema, dispose_db, init_db
from payroll_approval.exceptions import (
    AlreadyResolvedError,
    InconsistentBatchError,
    NotFoundError,
    PayrollApprovalError,
    PersistenceError,
    ValidationError,
)
from payroll_approval.services.state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)

# Client-correctable errors map to 4xx, storage failures to a retryable 503.
# A batch that disagrees with its own records is a server fault.
ERROR_STATUS: dict[type[PayrollApprovalError], int] = {
    ValidationError: 422,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    AlreadyResolvedError: status.HTTP_409_CONFLICT,
    PersistenceError: status.HTTP_503_SERVICE_UNAVAILABLE,
    InconsistentBatchError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: PayrollApprovalError) -> int:
    for exc_type, code in ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    engine, _ = init_db()
    if get_settings().create_schema_on_startup:
        await create_schema(engine)
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Payroll Approval API",
        description="Payroll batch approval and rejection workflow",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(PayrollApprovalError)
    async def payroll_approval_exception_handler(
        request: Request, exc: PayrollApprovalError
    ) -> JSONResponse:
        """Translate core errors into HTTP responses."""
        return JSONResponse(status_code=status_for(exc), content=exc.to_dict())

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_batches_router, prefix="/api/v1")
    app.include_router(payroll_records_router, prefix="/api/v1")
    app.include_router(payment_rejections_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
