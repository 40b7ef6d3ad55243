"""
Cheburcheck - Query Log Router
Lookup logging and visitor feedback for the public site.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import UnknownQuery
from ..services.query_log import QueryLogService
from .agency import client_address

logger = logging.getLogger(__name__)

router = APIRouter(tags=["queries"])


class QueryRecordRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=255)
    source_country_code: Optional[str] = Field(None, max_length=5)
    source_city_geo_name_id: Optional[int] = None
    target_country_code: Optional[str] = Field(None, max_length=5)
    target_asn: Optional[str] = Field(None, max_length=32)
    target_provider: Optional[str] = Field(None, max_length=255)
    resolved_ips: List[str] = []
    cdn_networks: List[str] = []
    cdn_providers: List[str] = []
    rkn_domain: Optional[str] = Field(None, max_length=255)


class QueryRecordResponse(BaseModel):
    id: str


class MessageResponse(BaseModel):
    message: str


@router.post("/queries", response_model=QueryRecordResponse)
def record_query(
    request: QueryRecordRequest,
    http_request: Request,
    db: Session = Depends(get_db),
):
    """Log an end-user lookup; the returned id is used for feedback."""
    query_id = QueryLogService(db).record_query(
        source_ip=client_address(http_request),
        **request.model_dump(),
    )
    return QueryRecordResponse(id=query_id)


@router.post("/feedback/{query_id}/{works}", response_model=MessageResponse)
def record_feedback(
    query_id: str,
    works: bool,
    http_request: Request,
    db: Session = Depends(get_db),
):
    """Visitor says whether the looked-up resource works for them."""
    try:
        QueryLogService(db).record_feedback(query_id, client_address(http_request), works)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid query id")
    except UnknownQuery as e:
        raise HTTPException(status_code=404, detail=str(e))

    return MessageResponse(message="Feedback recorded")
