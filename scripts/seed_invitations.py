#!/usr/bin/env python3
"""Seed a local invitation store with a team's worth of invitations.

Usage:
    python scripts/seed_invitations.py --count 250
    python scripts/seed_invitations.py --team <uuid> --list --page-size 50
    python scripts/seed_invitations.py --team <uuid> --purge

Uses DATABASE_URL / REDIS_URL from the environment (or .env). Handy for
exercising paging and cascade deletes against a real file-backed database.
"""

import argparse
import asyncio
import logging
import sys
import uuid

from invite_store.config import settings
from invite_store.database import init_db, version_check
from invite_store.errors import InvitationStoreError
from invite_store.invitation_store import TeamInvitationStore
from invite_store.redis_client import connect_redis, disconnect_redis


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--team", type=uuid.UUID, help="team id (default: a fresh one)")
    parser.add_argument("--count", type=int, default=0, help="invitations to create")
    parser.add_argument("--domain", default="example.com", help="email domain for seeded invites")
    parser.add_argument("--list", action="store_true", help="print every invitation, page by page")
    parser.add_argument("--page-size", type=int, default=100)
    parser.add_argument("--purge", action="store_true", help="delete all of the team's invitations")
    return parser.parse_args()


async def run(args: argparse.Namespace) -> None:
    await init_db()
    await version_check()
    await connect_redis()
    store = TeamInvitationStore()
    team = args.team or uuid.uuid4()
    print(f"Team: {team}")

    try:
        for i in range(args.count):
            invitation, code = await store.create_invitation(team, f"invitee{i}@{args.domain}")
            print(f"  created {invitation.id} {invitation.email} code={code}")

        if args.list:
            after = None
            page_no = 0
            while True:
                page = await store.list_invitations(team, after=after, page_size=args.page_size)
                page_no += 1
                print(f"--- page {page_no} ({len(page.invitations)} rows, more={page.has_more})")
                for inv in page.invitations:
                    print(f"  {inv.id} {inv.email} {inv.created_at.isoformat()}")
                if not page.has_more:
                    break
                after = page.invitations[-1].id

        if args.purge:
            deleted = await store.delete_all_invitations(team)
            print(f"Deleted {deleted} invitations")

        print(f"Invitations remaining: {await store.count_invitations(team)}")
    finally:
        await disconnect_redis()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(run(args))
    except InvitationStoreError as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
