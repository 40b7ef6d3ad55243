"""
Cheburcheck - Whitelist API Router

Read-only views of the most recently published whitelist.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel

from ..config import EXPORT_MAX_AGE_SECONDS
from ..dependencies import get_whitelist_cache
from ..services.consensus import WhitelistCache
from ..services.whitelist_export import (
    DEFAULT_HISTOGRAM_LIMIT,
    export_domains_csv,
    export_full_csv,
    rank_histogram,
)

router = APIRouter(prefix="/whitelist", tags=["whitelist"])


class WhitelistEntryResponse(BaseModel):
    domain: str
    rank: Optional[int] = None
    last_ok: Optional[str] = None


class WhitelistResponse(BaseModel):
    version: int
    computed_at: Optional[str] = None
    size: int
    entries: List[WhitelistEntryResponse]


class WhitelistCheckResponse(BaseModel):
    domain: str
    whitelisted: bool
    entry: Optional[WhitelistEntryResponse] = None


class HistogramBinResponse(BaseModel):
    bin_id: int
    bin_min_rank: int
    bin_max_rank: int
    count: int


EXPORTS = {
    "full.csv": export_full_csv,
    "domains.csv": export_domains_csv,
}


@router.get("", response_model=WhitelistResponse)
async def current_whitelist(cache: WhitelistCache = Depends(get_whitelist_cache)):
    """Most recent successfully published whitelist, in rank order."""
    return cache.current().to_dict()


@router.get("/check", response_model=WhitelistCheckResponse)
async def check_domain(
    domain: str = Query(..., max_length=255),
    cache: WhitelistCache = Depends(get_whitelist_cache),
):
    """Whitelist entry covering a domain (itself or a parent domain)."""
    entry = cache.current().lookup(domain)
    return {
        "domain": domain,
        "whitelisted": entry is not None,
        "entry": entry.to_dict() if entry else None,
    }


@router.get("/histogram", response_model=List[HistogramBinResponse])
async def histogram(
    limit: Optional[int] = None,
    exclude_co_uk: Optional[str] = Query(None, alias="filter"),
    cache: WhitelistCache = Depends(get_whitelist_cache),
):
    """Whitelisted domains per rank bucket (50 buckets over the top `limit` ranks)."""
    bins = rank_histogram(
        cache.current(),
        limit=DEFAULT_HISTOGRAM_LIMIT if limit is None else limit,
        exclude_co_uk=exclude_co_uk is not None,
    )
    return [b.to_dict() for b in bins]


@router.get("/{export_name}")
async def export_csv(export_name: str, cache: WhitelistCache = Depends(get_whitelist_cache)):
    """CSV downloads: full.csv (domain,rank,last_ok) or domains.csv."""
    exporter = EXPORTS.get(export_name)
    if exporter is None:
        raise HTTPException(status_code=404, detail=f"Unknown export: {export_name}")

    return Response(
        content=exporter(cache.current()),
        media_type="text/csv",
        headers={"Cache-Control": f"public, max-age={EXPORT_MAX_AGE_SECONDS}"},
    )
