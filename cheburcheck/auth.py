"""
Cheburcheck - Authentication Utilities
Bearer token extraction for reporters and the internal scheduler key.

Token → reporter resolution itself lives in ReporterRegistry so that
intake can enforce it as its first step.
"""
import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import INTERNAL_API_KEY

# Bearer token security; a missing header is reported by intake as Unauthorized
security = HTTPBearer(auto_error=False)


async def get_reporter_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Raw bearer token of the calling reporter, if any."""
    if credentials is None:
        return None
    return credentials.credentials


async def verify_internal_key(x_internal_key: Optional[str] = Header(None)) -> bool:
    """Verify internal API key for scheduler / admin endpoints."""
    if not x_internal_key or not hmac.compare_digest(x_internal_key, INTERNAL_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid internal API key",
        )
    return True
