"""Tests for settings loading and the global session helpers."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from payroll_approval.config import Settings, get_settings
from payroll_approval.database import create_schema, dispose_db, get_session, init_db
from payroll_approval.models import PayrollBatch


@pytest.fixture
async def global_db(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'global.db'}")
    get_settings.cache_clear()
    engine, _ = init_db()
    await create_schema(engine)
    yield
    await dispose_db()
    get_settings.cache_clear()


def new_batch() -> PayrollBatch:
    return PayrollBatch(
        period="2026-01",
        total_employees=1,
        total_gross_amount=Decimal("0.00"),
        total_net_amount=Decimal("0.00"),
        status="Pending_Finance_Approval",
        created_by="payroll.clerk",
    )


async def count_batches() -> int:
    async with get_session() as session:
        return (await session.execute(select(func.count()).select_from(PayrollBatch))).scalar_one()


class TestSettings:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://localhost/payroll")
        monkeypatch.setenv("MAX_TRANSACTION_RETRIES", "5")
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.max_transaction_retries == 5
        assert settings.debug is True
        assert settings.log_level == "DEBUG"
        assert settings.database_url == "postgresql+asyncpg://localhost/payroll"

    def test_defaults_to_sqlite(self, monkeypatch):
        for name in ("DATABASE_URL", "MAX_TRANSACTION_RETRIES", "CREATE_SCHEMA_ON_STARTUP"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.database_url.startswith("sqlite+aiosqlite:")
        assert settings.max_transaction_retries == 3
        assert settings.create_schema_on_startup is True


class TestGetSession:
    async def test_commits_on_success(self, global_db):
        async with get_session() as session:
            session.add(new_batch())

        assert await count_batches() == 1

    async def test_rolls_back_on_error(self, global_db):
        with pytest.raises(RuntimeError):
            async with get_session() as session:
                session.add(new_batch())
                await session.flush()
                raise RuntimeError("boom")

        assert await count_batches() == 0
