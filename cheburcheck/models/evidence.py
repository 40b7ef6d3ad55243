"""
Cheburcheck - Evidence Domain Models

Plain data structures passed between intake, the evidence store and the
consensus engine. ORM tables live in db_models.py; nothing here touches
the database.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple, Union


# =============================================================================
# ENUMS
# =============================================================================

class Evidence(str, Enum):
    """Outcome of a single reachability probe for one domain."""
    OK = "ok"
    BLOCKED = "blocked"
    CONNECTION_ERROR = "connection_error"
    UNKNOWN_ERROR = "unknown_error"

    @classmethod
    def parse(cls, value: Union["Evidence", str]) -> "Evidence":
        """Accept canonical values and the spellings used by the probe client."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            canonical = _EVIDENCE_ALIASES.get(value, value)
            try:
                return cls(canonical)
            except ValueError:
                pass
        raise ValueError(f"Unknown evidence kind: {value!r}")


_EVIDENCE_ALIASES: Dict[str, str] = {
    "Ok": "ok",
    "Blocked": "blocked",
    "ConnectError": "connection_error",
    "connect_error": "connection_error",
    "Error": "unknown_error",
}


# =============================================================================
# INTAKE
# =============================================================================

@dataclass(frozen=True)
class ProbeConfig:
    """Transport/timing parameters of a probe session. Stored as-is."""
    http: Optional[bool] = None
    tx_junk: Optional[bool] = None
    ip: Optional[str] = None
    path: Optional[str] = None
    retry_count: Optional[int] = None
    timeout_secs: Optional[int] = None
    probe_count: Optional[int] = None


@dataclass(frozen=True)
class ReportEnvelope:
    """Everything about a submission except its evidence rows."""
    reporter_ip: str
    version: str
    config: ProbeConfig = field(default_factory=ProbeConfig)


@dataclass(frozen=True)
class EvidenceItem:
    """One (domain, outcome) pair as submitted. Outcome is coerced during intake."""
    domain: str
    outcome: Union[Evidence, str]


# =============================================================================
# CONSENSUS
# =============================================================================

@dataclass(frozen=True)
class Observation:
    """An evidence row joined with its parent report's timestamp."""
    domain: str
    outcome: Evidence
    observed_at: datetime
    report_id: int
    row_id: int = 0

    @property
    def recency_key(self) -> Tuple[datetime, int, int]:
        return (self.observed_at, self.report_id, self.row_id)


@dataclass(frozen=True)
class WhitelistEntry:
    domain: str
    rank: Optional[int]
    last_ok: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "rank": self.rank,
            "last_ok": self.last_ok.isoformat() if self.last_ok else None,
        }
