"""
Process-wide consensus objects shared by routers and the lifespan hook.

Overridable in tests through app.dependency_overrides.
"""
from .database import SessionLocal
from .services.consensus import WhitelistBuilder, WhitelistCache

whitelist_cache = WhitelistCache()
whitelist_builder = WhitelistBuilder(SessionLocal, whitelist_cache)


def get_whitelist_cache() -> WhitelistCache:
    return whitelist_cache


def get_whitelist_builder() -> WhitelistBuilder:
    return whitelist_builder
