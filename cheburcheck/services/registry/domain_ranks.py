"""
Domain Rank Registry

Popularity ranking of domains (lower = more popular). Read by the
consensus engine for ordering; written only by the rank feed.
"""
import csv
import logging
from typing import Dict, Iterable, Optional, TextIO, Tuple

from sqlalchemy.orm import Session

from ...models.db_models import DomainRankDB

logger = logging.getLogger(__name__)


class DomainRankRegistry:

    def __init__(self, db: Session):
        self.db = db

    def rank_of(self, domain: str) -> Optional[int]:
        entry = self.db.query(DomainRankDB).filter(DomainRankDB.domain == domain).first()
        return entry.rank if entry else None

    def ranks_for(self, domains: Iterable[str], chunk_size: int = 500) -> Dict[str, int]:
        """Ranks of the given domains; unranked and unknown domains are left out."""
        domains = list(domains)
        ranks: Dict[str, int] = {}
        for start in range(0, len(domains), chunk_size):
            chunk = domains[start:start + chunk_size]
            query = self.db.query(DomainRankDB.domain, DomainRankDB.rank).filter(
                DomainRankDB.domain.in_(chunk)
            )
            for domain, rank in query:
                if rank is not None:
                    ranks[domain] = rank
        return ranks

    def upsert(self, domain: str, rank: Optional[int]) -> None:
        """Set (or clear, with None) the rank of a domain. Caller commits."""
        entry = self.db.get(DomainRankDB, domain)
        if entry is None:
            self.db.add(DomainRankDB(domain=domain, rank=rank))
        else:
            entry.rank = rank

    def upsert_many(self, ranks: Iterable[Tuple[str, Optional[int]]]) -> int:
        """Apply a batch of rank updates and commit. Later duplicates win."""
        latest: Dict[str, Optional[int]] = {}
        for domain, rank in ranks:
            latest[domain] = rank
        for domain, rank in latest.items():
            self.upsert(domain, rank)
        self.db.commit()
        return len(latest)

    def load_ranking(self, source: TextIO) -> int:
        """
        Load a `rank,domain` CSV (Tranco / Alexa top-list layout).

        Blank and malformed lines are skipped. Returns rows upserted.
        """
        def rows():
            for line_no, record in enumerate(csv.reader(source), start=1):
                if len(record) < 2:
                    continue
                try:
                    rank = int(record[0])
                except ValueError:
                    logger.debug(f"Skipping rank line {line_no}: {record!r}")
                    continue
                domain = record[1].strip().lower()
                if domain:
                    yield domain, rank

        count = self.upsert_many(rows())
        logger.info(f"Loaded {count} domain ranks")
        return count
