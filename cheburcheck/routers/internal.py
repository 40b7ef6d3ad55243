"""
Internal API Routes

System-only endpoints for the external scheduler and the rank feed.
Whitelist recompute trigger, rank upserts, report deletion.
"""
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth import verify_internal_key
from ..database import get_db
from ..dependencies import get_whitelist_builder
from ..services.consensus import WhitelistBuilder
from ..services.evidence_store import EvidenceStore
from ..services.registry import DomainRankRegistry


router = APIRouter(prefix="/internal", tags=["scheduler"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class RankUpdate(BaseModel):
    domain: str = Field(..., min_length=1, max_length=255)
    rank: Optional[int] = None


class RankUpdateRequest(BaseModel):
    ranks: List[RankUpdate]


# =============================================================================
# WHITELIST ENDPOINTS (SYSTEM-ONLY)
# =============================================================================

@router.post("/whitelist/recompute", response_model=dict)
def run_whitelist_recompute(
    builder: WhitelistBuilder = Depends(get_whitelist_builder),
    _: bool = Depends(verify_internal_key),
):
    """
    Recompute the whitelist now.

    Safe to call repeatedly. A call made while a recompute is running
    returns "queued" and one more run follows the current one.
    """
    result = builder.recompute()

    return {
        "task": "whitelist_recompute",
        "run_date": datetime.now(timezone.utc).isoformat(),
        **result,
    }


@router.get("/whitelist/status", response_model=dict)
def get_whitelist_status(
    builder: WhitelistBuilder = Depends(get_whitelist_builder),
    _: bool = Depends(verify_internal_key),
):
    """
    Current published version and the outcome of the last run.
    """
    snapshot = builder.cache.current()

    return {
        "version": snapshot.version,
        "computed_at": snapshot.computed_at.isoformat() if snapshot.computed_at else None,
        "size": len(snapshot),
        "running": builder.running,
        "last_result": builder.last_result,
    }


# =============================================================================
# RANK FEED
# =============================================================================

@router.put("/ranks", response_model=dict)
def upsert_domain_ranks(
    request: RankUpdateRequest,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    """
    Upsert domain popularity ranks. Takes effect on the next recompute.
    """
    updated = DomainRankRegistry(db).upsert_many(
        (update.domain, update.rank) for update in request.ranks
    )

    return {
        "task": "rank_upsert",
        "updated": updated,
    }


# =============================================================================
# REPORT ADMINISTRATION
# =============================================================================

@router.delete("/reports/{report_id}", response_model=dict)
def delete_report(
    report_id: int,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    """
    Hard delete a report together with all of its evidence rows.
    """
    cascade = EvidenceStore(db).delete_report(report_id)
    if cascade is None:
        raise HTTPException(status_code=404, detail="Report not found")

    return {
        "status": "deleted",
        "report_id": report_id,
        "cascade": cascade,
    }
