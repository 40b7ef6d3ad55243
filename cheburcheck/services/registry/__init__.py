"""
Registries consulted by intake and consensus.

Both are read-only from the core's point of view: reporters are created
administratively and ranks arrive through the rank feed.
"""

from .reporters import ReporterRegistry, TrustPolicy, StaticTrustPolicy
from .domain_ranks import DomainRankRegistry

__all__ = [
    "ReporterRegistry",
    "TrustPolicy",
    "StaticTrustPolicy",
    "DomainRankRegistry",
]
