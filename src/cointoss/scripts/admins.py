"""Operator CLI for granting and revoking admin access.

Usage:
    python -m cointoss.scripts.admins make-admin 0x1234...
    python -m cointoss.scripts.admins revoke-admin 0x1234...
    python -m cointoss.scripts.admins list
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from cointoss.auth.service import list_admins, set_admin_status
from cointoss.config import get_settings
from cointoss.database import close_db, get_session_factory, init_db
from cointoss.errors import CoinTossError


async def _set_admin(wallet: str, is_admin: bool) -> str:
    async with get_session_factory()() as db:
        user = await set_admin_status(db, wallet, is_admin)
    verb = "granted to" if is_admin else "revoked from"
    return f"Admin access {verb} user {user.id} ({user.wallet_address})"


async def _list_admins() -> str:
    async with get_session_factory()() as db:
        admins = await list_admins(db)
    if not admins:
        return "No admins configured"
    lines = [f"{u.id}\t{u.wallet_address}\t{u.username or '-'}" for u in admins]
    return "\n".join(lines)


async def run(args: argparse.Namespace) -> str:
    await init_db(get_settings().database_url)
    try:
        if args.command == "list":
            return await _list_admins()
        return await _set_admin(args.wallet, args.command == "make-admin")
    finally:
        await close_db()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage Coin Toss admin users")
    sub = parser.add_subparsers(dest="command", required=True)
    make = sub.add_parser("make-admin", help="Grant admin access to a wallet")
    make.add_argument("wallet", help="Wallet address (0x + 40 hex chars)")
    revoke = sub.add_parser("revoke-admin", help="Revoke admin access from a wallet")
    revoke.add_argument("wallet", help="Wallet address (0x + 40 hex chars)")
    sub.add_parser("list", help="List current admins")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        print(asyncio.run(run(args)))
    except CoinTossError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
