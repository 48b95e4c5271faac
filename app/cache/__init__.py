"""
Query cache package exports.
"""

from app.cache.backends import (
    InMemoryKeyValueCache,
    KeyValueCache,
    PrefixDeletingCache,
    RedisKeyValueCache,
    build_backend,
)
from app.cache.fingerprint import canonical_params, fingerprint, scope_prefix
from app.cache.query_cache import QueryCache, get_query_cache

__all__ = [
    "InMemoryKeyValueCache",
    "KeyValueCache",
    "PrefixDeletingCache",
    "QueryCache",
    "RedisKeyValueCache",
    "build_backend",
    "canonical_params",
    "fingerprint",
    "get_query_cache",
    "scope_prefix",
]
