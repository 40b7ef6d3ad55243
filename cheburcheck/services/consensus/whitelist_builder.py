"""
Whitelist Builder

Recomputes the whitelist from scratch and publishes it into a
WhitelistCache. Runs on its own schedule, never from intake.

Failure policy:
- Evidence read fails → abort, keep the previously published whitelist
- Rank read fails → publish anyway with every domain unranked

At most one recompute runs at a time. A trigger that arrives while one is
running is coalesced into a single follow-up run.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from ...config import CONSENSUS_WINDOW, TRUSTED_REPORTER_IDS
from ...models.db_models import utcnow
from ...models.evidence import Observation
from ..evidence_store import EvidenceStore
from ..registry.domain_ranks import DomainRankRegistry
from ..registry.reporters import StaticTrustPolicy, TrustPolicy
from .majority import build_whitelist
from .snapshot import WhitelistCache

logger = logging.getLogger(__name__)


class WhitelistBuilder:
    """
    Usage:
        builder = WhitelistBuilder(SessionLocal, cache)
        result = builder.recompute()
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        cache: Optional[WhitelistCache] = None,
        trust_policy: Optional[TrustPolicy] = None,
        window_size: int = CONSENSUS_WINDOW,
    ):
        self.session_factory = session_factory
        self.cache = cache or WhitelistCache()
        self.trust_policy = trust_policy or StaticTrustPolicy(TRUSTED_REPORTER_IDS)
        self.window_size = window_size

        self._state_lock = threading.Lock()
        self._running = False
        self._rerun_requested = False
        self.last_result: Optional[Dict[str, Any]] = None

    @property
    def running(self) -> bool:
        return self._running

    def recompute(self) -> Dict[str, Any]:
        """
        Rebuild and publish the whitelist.

        Returns:
            Status dict: "published", "failed" (previous whitelist kept) or
            "queued" (another run is in flight and will run once more)
        """
        with self._state_lock:
            if self._running:
                self._rerun_requested = True
                logger.info("Whitelist recompute already running, queued a follow-up run")
                return {"status": "queued", "version": self.cache.current().version}
            self._running = True

        try:
            while True:
                result = self._recompute_once()
                with self._state_lock:
                    if not self._rerun_requested:
                        self._running = False
                        break
                    self._rerun_requested = False
        except BaseException:
            with self._state_lock:
                self._running = False
                self._rerun_requested = False
            raise

        self.last_result = result
        return result

    def _recompute_once(self) -> Dict[str, Any]:
        started_at = datetime.now(timezone.utc)
        previous = self.cache.current()

        try:
            observations = self._load_observations()
        except Exception as e:
            logger.error(f"Whitelist recompute aborted, evidence read failed: {e}")
            return {
                "status": "failed",
                "error": str(e),
                "version": previous.version,
                "started_at": started_at.isoformat(),
            }

        domains = {o.domain for o in observations}
        ranks = self._load_ranks(domains)

        entries = build_whitelist(observations, ranks, self.window_size)
        snapshot = self.cache.publish(entries, computed_at=utcnow())

        completed_at = datetime.now(timezone.utc)
        duration = (completed_at - started_at).total_seconds()
        logger.info(
            f"Whitelist v{snapshot.version} published: {len(entries)}/{len(domains)} domains "
            f"from {len(observations)} observations in {duration:.2f}s"
        )

        return {
            "status": "published",
            "version": snapshot.version,
            "observations": len(observations),
            "domains": len(domains),
            "whitelisted": len(entries),
            "ranked": len(ranks),
            "started_at": started_at.isoformat(),
            "completed_at": completed_at.isoformat(),
            "duration_seconds": duration,
        }

    def _load_observations(self) -> List[Observation]:
        """Evidence from trusted reporters only."""
        # Push the filter down to SQL when the policy knows its members
        reporter_ids = getattr(self.trust_policy, "reporter_ids", None)

        db = self.session_factory()
        try:
            return [
                observation
                for reporter_id, observation in EvidenceStore(db).iter_observations(reporter_ids)
                if self.trust_policy.is_trusted(reporter_id)
            ]
        finally:
            db.close()

    def _load_ranks(self, domains) -> Mapping[str, int]:
        if not domains:
            return {}
        try:
            db = self.session_factory()
            try:
                return DomainRankRegistry(db).ranks_for(sorted(domains))
            finally:
                db.close()
        except Exception as e:
            logger.warning(f"Domain ranks unavailable, publishing unranked: {e}")
            return {}
