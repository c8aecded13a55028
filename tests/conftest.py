"""Pytest fixtures for payroll approval tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_approval.database import create_schema, create_session_factory, get_engine
from payroll_approval.services.approval_engine import ApprovalEngine
from payroll_approval.services.types import BatchCreated, PayrollLineItem

PERIOD = "2026-01"
PERIOD_START = date(2026, 1, 1)
PERIOD_END = date(2026, 1, 31)


def make_line_item(
    employee_id: str = "EMP001",
    basic_salary: str = "5000.00",
    allowances: str = "500.00",
    tax: str = "800.00",
    statutory_deductions: str = "300.00",
    other_deductions: str = "0.00",
    **overrides,
) -> PayrollLineItem:
    """Build a consistent line item; ``overrides`` replace any field as given."""
    basic = Decimal(basic_salary)
    extra = Decimal(allowances)
    deductions = [Decimal(tax), Decimal(statutory_deductions), Decimal(other_deductions)]
    gross = basic + extra
    total = sum(deductions, Decimal("0.00"))
    values = dict(
        employee_id=employee_id,
        employee_name=f"Employee {employee_id}",
        pay_period_start=PERIOD_START,
        pay_period_end=PERIOD_END,
        basic_salary=basic,
        allowances=extra,
        gross_salary=gross,
        tax=deductions[0],
        statutory_deductions=deductions[1],
        other_deductions=deductions[2],
        total_deductions=total,
        net_salary=gross - total,
    )
    values.update(overrides)
    return PayrollLineItem(**values)


@pytest.fixture
def make_item() -> Callable[..., PayrollLineItem]:
    return make_line_item


@pytest.fixture
async def db_engine(tmp_path):
    """Create a test database engine with the schema in place.

    File-backed so that concurrent sessions share one database; in-memory
    SQLite gives every connection its own empty database.
    """
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}")
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(db_engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def approval(session_factory) -> ApprovalEngine:
    return ApprovalEngine(session_factory, max_retries=3)


@pytest.fixture
async def batch(approval: ApprovalEngine) -> BatchCreated:
    """Three pending records with net salaries 4400.00, 5400.00 and 6400.00."""
    return await approval.create_batch(
        PERIOD,
        [
            make_line_item("EMP001", basic_salary="5000.00"),
            make_line_item("EMP002", basic_salary="6000.00"),
            make_line_item("EMP003", basic_salary="7000.00"),
        ],
        actor="payroll.clerk",
    )
