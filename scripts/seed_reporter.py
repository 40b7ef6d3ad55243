#!/usr/bin/env python3
"""
Reporter Seed Script
Registers a probe agency so it can upload reports.

Usage:
    python -m scripts.seed_reporter <name> <token>

Example:
    python -m scripts.seed_reporter primary-probe 3f9c2a...

The first reporter created gets id 1, the default trusted reporter.
"""
import sys
from typing import Callable, Optional

from sqlalchemy.orm import Session

from cheburcheck.database import SessionLocal, init_db
from cheburcheck.models.db_models import ReporterDB

MIN_TOKEN_LENGTH = 16


def create_reporter(name: str, token: str, session_factory: Callable[[], Session] = SessionLocal) -> Optional[int]:
    """Create a reporter; returns its id, or None when the token is taken."""
    db: Session = session_factory()
    try:
        existing = db.query(ReporterDB).filter(ReporterDB.token == token).first()
        if existing:
            print(f"Error: token already belongs to reporter #{existing.id} ({existing.name}).")
            return None

        reporter = ReporterDB(name=name, token=token)
        db.add(reporter)
        db.commit()

        print("Reporter created successfully!")
        print(f"  Id: {reporter.id}")
        print(f"  Name: {name}")
        return reporter.id

    except Exception as e:
        print(f"Error creating reporter: {e}")
        db.rollback()
        return None
    finally:
        db.close()


def main():
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)

    name = sys.argv[1]
    token = sys.argv[2]

    if len(token) < MIN_TOKEN_LENGTH:
        print(f"Error: Token must be at least {MIN_TOKEN_LENGTH} characters.")
        sys.exit(1)

    # Ensure tables exist
    init_db()

    reporter_id = create_reporter(name, token)
    sys.exit(0 if reporter_id is not None else 1)


if __name__ == "__main__":
    main()
