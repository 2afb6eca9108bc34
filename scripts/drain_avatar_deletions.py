#!/usr/bin/env python3
"""Drain the avatar deletion outbox once, without a Celery worker.

Useful after a storage outage, or to inspect what the worker would do.

Usage:
    # From project root (with Docker running):
    docker compose exec api python scripts/drain_avatar_deletions.py

    # Also queue stored avatars that no profile references:
    python scripts/drain_avatar_deletions.py --sweep

    # Show queue status only:
    python scripts/drain_avatar_deletions.py --status
"""

import argparse
import asyncio
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import func

from src.database import SessionLocal
from src.models import AvatarDeletion
from src.services.avatar_cleanup import AvatarCleanupService


def print_status(session) -> None:
    """Print outbox row counts by status."""
    counts = (
        session.query(AvatarDeletion.status, func.count(AvatarDeletion.id))
        .group_by(AvatarDeletion.status)
        .all()
    )
    if not counts:
        print("Avatar deletion outbox is empty.")
        return
    for status, count in sorted(counts):
        print(f"{status:>10}: {count}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--sweep", action="store_true", help="queue orphaned avatars first")
    parser.add_argument("--status", action="store_true", help="only print outbox status")
    parser.add_argument("--limit", type=int, default=None, help="max deletions to attempt")
    args = parser.parse_args()

    session = SessionLocal()
    try:
        if args.status:
            print_status(session)
            return

        service = AvatarCleanupService(session)
        if args.sweep:
            queued = asyncio.run(service.sweep_orphans())
            print(f"Queued {queued} orphaned avatar(s) for deletion")

        stats = asyncio.run(service.process_pending(args.limit))
        print(
            f"Processed {stats.processed}: {stats.deleted} deleted, "
            f"{stats.retried} will retry, {stats.failed} abandoned, "
            f"{stats.skipped} kept because a profile uses them again"
        )
        print_status(session)

    except Exception as e:
        session.rollback()
        print(f"Error draining avatar deletions: {e}")
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
