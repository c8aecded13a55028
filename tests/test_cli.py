"""Tests for the operational command line."""

import json
from uuid import uuid4

import pytest

from payroll_approval.cli import build_parser, main
from payroll_approval.config import get_settings


@pytest.fixture
def cli_database(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestParser:
    def test_rejections_options(self):
        batch_id = uuid4()
        args = build_parser().parse_args(["rejections", "--batch-id", str(batch_id), "--unresolved"])

        assert args.command == "rejections"
        assert args.batch_id == batch_id
        assert args.unresolved is True

    def test_batch_status_needs_uuid(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["batch-status", "not-a-uuid"])


class TestCommands:
    def test_init_db_then_list_rejections(self, cli_database, capsys):
        assert main(["init-db"]) == 0
        assert json.loads(capsys.readouterr().out) == {"status": "ok"}

        assert main(["rejections", "--unresolved"]) == 0
        assert json.loads(capsys.readouterr().out) == []

    def test_unknown_batch(self, cli_database, capsys):
        assert main(["init-db"]) == 0
        capsys.readouterr()

        assert main(["batch-status", str(uuid4())]) == 1
        assert json.loads(capsys.readouterr().err)["code"] == "NOT_FOUND"
