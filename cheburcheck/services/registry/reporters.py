"""
Reporter Registry

Maps opaque bearer tokens to reporter identities and decides which
reporters are trusted for consensus.
"""
from typing import Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from ...models.db_models import ReporterDB
from ...errors import Unauthorized


class ReporterRegistry:
    """Read-only token lookup. Matching is exact and case-sensitive."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_token(self, token: Optional[str]) -> Optional[ReporterDB]:
        if not token:
            return None
        return self.db.query(ReporterDB).filter(ReporterDB.token == token).first()

    def authenticate(self, token: Optional[str]) -> int:
        """
        Resolve a bearer token to a reporter id.

        Raises:
            Unauthorized: no reporter holds this token
        """
        reporter = self.find_by_token(token)
        # Some collations compare case-insensitively; re-check in Python
        if reporter is None or reporter.token != token:
            raise Unauthorized("Unknown reporter token")
        return reporter.id


class TrustPolicy(Protocol):
    """Decides whether a reporter's evidence counts toward the whitelist."""

    def is_trusted(self, reporter_id: int) -> bool:
        ...


class StaticTrustPolicy:
    """Trusts a fixed set of reporter ids (by default only the primary reporter)."""

    def __init__(self, reporter_ids: Iterable[int]):
        self.reporter_ids = frozenset(int(rid) for rid in reporter_ids)

    def is_trusted(self, reporter_id: int) -> bool:
        return reporter_id in self.reporter_ids

    def __repr__(self) -> str:
        return f"StaticTrustPolicy({sorted(self.reporter_ids)})"
