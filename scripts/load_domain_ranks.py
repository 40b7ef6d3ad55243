#!/usr/bin/env python3
"""
Domain Rank Loader
Feeds a top-sites list into the domains table.

Usage:
    python -m scripts.load_domain_ranks <ranking.csv>

The file is `rank,domain` per line (Tranco / Alexa layout). Ranks take
effect on the next whitelist recompute.
"""
import sys
from typing import Callable

from sqlalchemy.orm import Session

from cheburcheck.database import SessionLocal, init_db
from cheburcheck.services.registry import DomainRankRegistry


def load_ranks(path: str, session_factory: Callable[[], Session] = SessionLocal) -> int:
    db: Session = session_factory()
    try:
        with open(path, newline="", encoding="utf-8") as source:
            return DomainRankRegistry(db).load_ranking(source)
    finally:
        db.close()


def main():
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)

    init_db()

    count = load_ranks(sys.argv[1])
    print(f"Loaded {count} domain ranks.")


if __name__ == "__main__":
    main()
