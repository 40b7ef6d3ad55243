"""Cheburcheck - API Routers"""
from .agency import router as agency_router
from .whitelist import router as whitelist_router
from .internal import router as internal_router
from .queries import router as queries_router

__all__ = [
    "agency_router",
    "whitelist_router",
    "internal_router",
    "queries_router",
]
