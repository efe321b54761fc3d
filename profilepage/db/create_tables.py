"""Create (or rebuild) the schema for users, the profile generations and sessions."""
from __future__ import annotations

import argparse
import logging

from sqlalchemy.exc import SQLAlchemyError

from .session import Base, get_engine
from . import models  # noqa: F401  # registers the tables on Base.metadata

log = logging.getLogger(__name__)


def create_all(*, drop_first: bool = False) -> None:
    engine = get_engine()
    if drop_first:
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    log.debug("schema ready: %s", ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Create the profile page tables")
    ap.add_argument("--drop", action="store_true", help="Drop existing tables first (destroys data)")
    args = ap.parse_args()
    try:
        create_all(drop_first=args.drop)
        print("Database tables created successfully.")
    except SQLAlchemyError as exc:
        raise SystemExit(f"Failed to create tables: {exc}") from exc
