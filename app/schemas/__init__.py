"""
app/schemas package marker.
"""

from app.schemas.cache_admin import (
    CacheClearResponse,
    CacheHealthResponse,
    CacheStatsResponse,
    CacheWarmRequest,
    CacheWarmResponse,
)
from app.schemas.contracts import (
    CategoryStatsListResponse,
    ContractDetailResponse,
    ContractListResponse,
    TopSupplierListResponse,
)
from app.schemas.sync import (
    SyncReportResponse,
    SyncRunListResponse,
    SyncRunRequest,
    SyncRunResponse,
)

__all__ = [
    "CacheClearResponse",
    "CacheHealthResponse",
    "CacheStatsResponse",
    "CacheWarmRequest",
    "CacheWarmResponse",
    "CategoryStatsListResponse",
    "ContractDetailResponse",
    "ContractListResponse",
    "TopSupplierListResponse",
    "SyncReportResponse",
    "SyncRunListResponse",
    "SyncRunRequest",
    "SyncRunResponse",
]
