"""
Whitelist consensus rule.

Pure functions over in-memory observations; no database access.

For each domain:
1. Order its observations newest first (report time, then report id, then row id)
2. Keep at most `window_size` of them
3. Whitelist the domain when ok rows are at least half of the window
   (2 of 4 passes, 1 of 4 does not)
4. Attach the newest ok timestamp in the window and the domain's rank
Output is sorted by rank ascending, unranked domains last.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ...config import CONSENSUS_WINDOW
from ...models.evidence import Evidence, Observation, WhitelistEntry


def consensus_window(
    observations: Iterable[Observation],
    window_size: int = CONSENSUS_WINDOW,
) -> List[Observation]:
    """The `window_size` most recent observations, newest first."""
    ordered = sorted(observations, key=lambda o: o.recency_key, reverse=True)
    return ordered[:window_size]


def is_reachable(window: Sequence[Observation]) -> bool:
    """Majority rule: ok count >= half the window. Ties whitelist."""
    if not window:
        return False
    ok_count = sum(1 for o in window if o.outcome == Evidence.OK)
    return 2 * ok_count >= len(window)


def group_by_domain(observations: Iterable[Observation]) -> Dict[str, List[Observation]]:
    grouped: Dict[str, List[Observation]] = defaultdict(list)
    for observation in observations:
        grouped[observation.domain].append(observation)
    return grouped


def evaluate_domain(
    domain: str,
    observations: Iterable[Observation],
    rank: Optional[int],
    window_size: int = CONSENSUS_WINDOW,
) -> Optional[WhitelistEntry]:
    """WhitelistEntry for the domain, or None when it fails the rule."""
    window = consensus_window(observations, window_size)
    if not is_reachable(window):
        return None

    last_ok = max(o.observed_at for o in window if o.outcome == Evidence.OK)
    return WhitelistEntry(domain=domain, rank=rank, last_ok=last_ok)


def whitelist_order(entry: WhitelistEntry):
    return (entry.rank is None, entry.rank if entry.rank is not None else 0, entry.domain)


def build_whitelist(
    observations: Iterable[Observation],
    ranks: Mapping[str, int],
    window_size: int = CONSENSUS_WINDOW,
) -> List[WhitelistEntry]:
    """
    Recompute the whitelist from trusted observations.

    Args:
        observations: Evidence from trusted reporters only
        ranks: domain → rank; missing domains are unranked
        window_size: Consensus window (most recent rows per domain)

    Returns:
        Whitelisted domains ordered by rank, unranked last
    """
    if window_size < 1:
        raise ValueError("window_size must be at least 1")

    entries = []
    for domain, domain_observations in group_by_domain(observations).items():
        entry = evaluate_domain(domain, domain_observations, ranks.get(domain), window_size)
        if entry is not None:
            entries.append(entry)

    entries.sort(key=whitelist_order)
    return entries
