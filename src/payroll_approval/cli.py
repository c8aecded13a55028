"""Payroll approval command line interface.

Usage:
    python -m payroll_approval.cli init-db
    python -m payroll_approval.cli batch-status <batch_id>
    python -m payroll_approval.cli rejections [--batch-id X] [--unresolved]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import Any
from uuid import UUID

from payroll_approval.config import get_settings
from payroll_approval.database import create_schema, dispose_db, init_db
from payroll_approval.exceptions import PayrollApprovalError
from payroll_approval.services.approval_engine import ApprovalEngine


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m payroll_approval.cli",
        description="Payroll approval operational tools",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the payroll approval tables")

    status = subparsers.add_parser("batch-status", help="Show a batch's derived status")
    status.add_argument("batch_id", type=parse_uuid)

    rejections = subparsers.add_parser("rejections", help="List payment rejections")
    rejections.add_argument("--batch-id", type=parse_uuid, default=None)
    rejections.add_argument(
        "--unresolved",
        action="store_true",
        help="Only show rejections HR has not resolved yet",
    )
    return parser


async def run(args: argparse.Namespace) -> dict[str, Any] | list[dict[str, Any]]:
    engine, factory = init_db()
    try:
        if args.command == "init-db":
            await create_schema(engine)
            return {"status": "ok"}

        approval = ApprovalEngine(factory)
        if args.command == "batch-status":
            summary = await approval.get_batch_status(args.batch_id)
            return {**asdict(summary), "pending_count": summary.pending_count}

        rejections = await approval.list_rejections(
            batch_id=args.batch_id,
            resolved=False if args.unresolved else None,
        )
        return [r.to_dict() for r in rejections]
    finally:
        await dispose_db()


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=get_settings().log_level)
    args = build_parser().parse_args(argv)
    try:
        output = asyncio.run(run(args))
    except PayrollApprovalError as e:
        print(json.dumps(e.to_dict()), file=sys.stderr)
        return 1
    print(json.dumps(output, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
