"""
Published whitelist.

Each recompute produces a new immutable WhitelistSnapshot; the cache swaps
its reference in one assignment so readers always see a complete version.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Sequence, Tuple

from ...models.db_models import utcnow
from ...models.evidence import WhitelistEntry

# Lookups of deeper names never match (a.b.c.d.example.test has 5 dots)
MAX_LOOKUP_DOTS = 4


@dataclass(frozen=True)
class WhitelistSnapshot:
    version: int
    computed_at: Optional[datetime]
    entries: Tuple[WhitelistEntry, ...] = ()
    by_domain: Dict[str, WhitelistEntry] = field(default_factory=dict, compare=False, repr=False)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, domain: str) -> bool:
        return domain in self.by_domain

    def get(self, domain: str) -> Optional[WhitelistEntry]:
        return self.by_domain.get(domain)

    def lookup(self, domain: str) -> Optional[WhitelistEntry]:
        """
        Entry covering `domain`: itself or its longest whitelisted parent.

        `cdn.example.test` is covered by a whitelisted `example.test`.
        """
        domain = domain.strip().rstrip(".")
        if not domain or domain.count(".") > MAX_LOOKUP_DOTS:
            return None

        labels = domain.split(".")
        for start in range(len(labels)):
            entry = self.by_domain.get(".".join(labels[start:]))
            if entry is not None:
                return entry
        return None

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "computed_at": self.computed_at.isoformat() if self.computed_at else None,
            "size": len(self.entries),
            "entries": [entry.to_dict() for entry in self.entries],
        }


class WhitelistCache:
    """
    Holder of the current snapshot.

    Rebuildable: losing it only means waiting for the next recompute.
    """

    def __init__(self):
        self._snapshot = WhitelistSnapshot(version=0, computed_at=None)
        self._publish_lock = threading.Lock()

    def current(self) -> WhitelistSnapshot:
        return self._snapshot

    def publish(self, entries: Sequence[WhitelistEntry], computed_at: Optional[datetime] = None) -> WhitelistSnapshot:
        with self._publish_lock:
            snapshot = WhitelistSnapshot(
                version=self._snapshot.version + 1,
                computed_at=computed_at or utcnow(),
                entries=tuple(entries),
                by_domain={entry.domain: entry for entry in entries},
            )
            self._snapshot = snapshot
        return snapshot
