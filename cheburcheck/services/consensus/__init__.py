"""
Consensus Engine

Derives the whitelist from trusted evidence:
- majority: pure window / majority-vote functions
- snapshot: immutable published versions + atomic swap
- whitelist_builder: load → compute → publish, one run at a time
- refresher: background timer
"""

from .majority import build_whitelist, consensus_window, is_reachable
from .snapshot import WhitelistCache, WhitelistSnapshot
from .whitelist_builder import WhitelistBuilder
from .refresher import WhitelistRefresher

__all__ = [
    "build_whitelist",
    "consensus_window",
    "is_reachable",
    "WhitelistCache",
    "WhitelistSnapshot",
    "WhitelistBuilder",
    "WhitelistRefresher",
]
