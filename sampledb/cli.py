"""CLI entrypoints for account bootstrap tasks."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence

from sampledb.db.session import dispose_engine, get_session_factory
from sampledb.services.user_service import UserServiceError, get_user_service


async def _run_create_user(username: str, password: str, approve: bool, admin: bool) -> int:
    """Create an account, optionally approved and with admin rights."""
    user_service = get_user_service()
    session_factory = get_session_factory()
    try:
        async with session_factory() as db_session:
            user = await user_service.create_user(
                db_session=db_session,
                username=username.strip(),
                password=password,
                approved=approve,
                is_admin=admin,
            )
    except UserServiceError as exc:
        print(json.dumps({"error": exc.code, "detail": exc.detail}), file=sys.stderr)
        return 1
    finally:
        await dispose_engine()

    print(
        json.dumps(
            {
                "user_id": user.id,
                "username": user.username,
                "approved": user.is_approved,
                "is_admin": user.is_admin,
            }
        )
    )
    return 0


async def _run_approve_user(username: str) -> int:
    """Approve a pending account by username."""
    user_service = get_user_service()
    session_factory = get_session_factory()
    try:
        async with session_factory() as db_session:
            user = await user_service.approve_user(db_session=db_session, username=username)
    except UserServiceError as exc:
        print(json.dumps({"error": exc.code, "detail": exc.detail}), file=sys.stderr)
        return 1
    finally:
        await dispose_engine()

    print(json.dumps({"user_id": user.id, "username": user.username, "approved": True}))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Build command-line parser for supported operational commands."""
    parser = argparse.ArgumentParser(prog="python -m sampledb.cli")
    subcommands = parser.add_subparsers(dest="command", required=True)

    create_parser = subcommands.add_parser("create-user")
    create_parser.add_argument("--username", required=True)
    create_parser.add_argument("--password", required=True)
    create_parser.add_argument(
        "--approve", action="store_true", help="Mark the account approved immediately."
    )
    create_parser.add_argument("--admin", action="store_true", help="Grant admin rights.")

    approve_parser = subcommands.add_parser("approve-user")
    approve_parser.add_argument("--username", required=True)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run CLI command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "create-user":
        return asyncio.run(
            _run_create_user(
                username=args.username,
                password=args.password,
                approve=args.approve,
                admin=args.admin,
            )
        )
    if args.command == "approve-user":
        return asyncio.run(_run_approve_user(username=args.username))
    parser.error("Unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
