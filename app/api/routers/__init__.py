"""
app/api/routers package marker.
"""

from app.api.routers.cache_admin import router as cache_admin_router
from app.api.routers.contracts import router as contracts_router
from app.api.routers.sync import router as sync_router

__all__ = [
    "cache_admin_router",
    "contracts_router",
    "sync_router",
]
