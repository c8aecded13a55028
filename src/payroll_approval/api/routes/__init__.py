"""API routes."""

from payroll_approval.api.routes.health import router as health_router
from payroll_approval.api.routes.payment_rejections import router as payment_rejections_router
from payroll_approval.api.routes.payroll_batches import router as payroll_batches_router
from payroll_approval.api.routes.payroll_records import router as payroll_records_router

__all__ = [
    "health_router",
    "payroll_batches_router",
    "payroll_records_router",
    "payment_rejections_router",
]
