#!/usr/bin/env python3
"""
Migrate users' single-document profiles to the named profile collection.

Usage:
  python scripts/migrate_profiles.py [--user USER_ID] [--dry-run]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# keep the package importable when run directly
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from profilepage.core.log import configure_logging
from profilepage.services.migration_service import MigrationService


def main() -> int:
    ap = argparse.ArgumentParser(description="Migrate legacy profiles to named profiles")
    ap.add_argument("--user", help="Only migrate this user id (default: every user)")
    ap.add_argument("--dry-run", action="store_true", help="Report what would be migrated without writing")
    args = ap.parse_args()

    configure_logging()
    svc = MigrationService()
    repo = svc.repository
    if args.user:
        user = repo.get_user(args.user.strip())
        if not user:
            raise SystemExit(f"User '{args.user}' not found")
        users = [user]
    else:
        users = repo.list_users()

    pending = [u for u in users if not u.profile_migrated]
    print(f"{len(users)} user(s), {len(pending)} pending migration")
    failed = 0
    for user in pending:
        if args.dry_run:
            legacy = svc.read_legacy(user.id)
            count = len(svc.build_profile_fields(legacy)["components"]) if legacy else 0
            print(f"  would migrate {user.id} ({count} component(s))")
            continue
        if svc.migrate(user.id):
            print(f"  migrated {user.id}")
        else:
            failed += 1
            print(f"  FAILED {user.id}")
    if failed:
        print(f"{failed} migration(s) failed; rerun to retry")
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:  # pragma: no cover
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
