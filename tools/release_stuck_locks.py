# FILE: tools/release_stuck_locks.py
"""Release project locks left in 'processing' by a crashed server.

Use this when a process died mid-operation and the stale-lock takeover is
disabled (SITESMITH_LOCK_STALE_AFTER_SECONDS=0) or too slow to wait for.
Safe: only touches projects whose build_status is 'processing'.

Usage:
    python tools/release_stuck_locks.py                     # list locks older than 10 min
    python tools/release_stuck_locks.py --apply             # release them
    python tools/release_stuck_locks.py --older-than 0 --apply
    python tools/release_stuck_locks.py <project_id> ... --apply
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add project root
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from sitesmith.config import load_settings
from sitesmith.db import make_engine, make_session_factory
from sitesmith.locks.service import LockManager

DEFAULT_OLDER_THAN_SECONDS = 600


def release_stuck(
    locks: LockManager,
    project_ids: Optional[List[str]] = None,
    older_than_seconds: Optional[int] = DEFAULT_OLDER_THAN_SECONDS,
    apply: bool = False,
) -> List[str]:
    """Returns the ids of projects that were (or, without apply, would be) released."""
    stuck = locks.list_locked(older_than_seconds=older_than_seconds)
    if project_ids:
        wanted = set(project_ids)
        stuck = [s for s in stuck if s.project_id in wanted]

    for status in stuck:
        print(f"{status.project_id}  held by {status.locked_by} since {status.locked_at}")
        if apply:
            locks.force_release(status.project_id)
    return [s.project_id for s in stuck]


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Release stuck SiteSmith project locks")
    parser.add_argument("project_ids", nargs="*", help="Only these projects (default: all stuck)")
    parser.add_argument(
        "--older-than",
        type=int,
        default=DEFAULT_OLDER_THAN_SECONDS,
        help="Minimum lock age in seconds",
    )
    parser.add_argument("--apply", action="store_true", help="Release (default is a dry run)")
    parser.add_argument("--database-url", default=None, help="Override SITESMITH_DATABASE_URL")
    args = parser.parse_args(argv)

    load_dotenv()
    database_url = args.database_url or load_settings().database_url

    engine = make_engine(database_url)
    try:
        locks = LockManager(make_session_factory(engine))
        released = release_stuck(
            locks,
            project_ids=args.project_ids,
            older_than_seconds=args.older_than,
            apply=args.apply,
        )
    finally:
        engine.dispose()

    verb = "Released" if args.apply else "Would release"
    print(f"{verb}: {len(released)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
