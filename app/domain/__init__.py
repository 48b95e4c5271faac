"""
app/domain package marker.
"""

from app.domain.errors import (
    CacheError,
    ConflictError,
    DumpFormatError,
    ParseError,
    RecordError,
    RegistrySyncError,
    StoreError,
    SyncAlreadyRunningError,
    TransportError,
    ValidationError,
)
from app.domain.query_cache import (
    CacheHealthMetrics,
    CacheKind,
    CacheLookup,
    CacheScope,
    PerformanceCounters,
    QueryFingerprint,
)
from app.domain.registry import (
    Period,
    RawAmendment,
    RawRecord,
    RecordFailure,
    RecordType,
    SyncReport,
    SyncState,
)

__all__ = [
    "CacheError",
    "CacheHealthMetrics",
    "CacheKind",
    "CacheLookup",
    "CacheScope",
    "ConflictError",
    "DumpFormatError",
    "ParseError",
    "PerformanceCounters",
    "Period",
    "QueryFingerprint",
    "RawAmendment",
    "RawRecord",
    "RecordError",
    "RecordFailure",
    "RecordType",
    "RegistrySyncError",
    "StoreError",
    "SyncAlreadyRunningError",
    "SyncReport",
    "SyncState",
    "TransportError",
    "ValidationError",
]
