"""
app/services package marker.
"""

from app.services.contract_query_service import ContractQueryService, get_contract_query_service
from app.services.reconciler import Reconciler
from app.services.sync_runner import SyncRunner, compute_periods, get_sync_runner
from app.services.sync_service import SyncRunResult, SyncService, SyncTrigger, get_sync_service

__all__ = [
    "ContractQueryService",
    "get_contract_query_service",
    "Reconciler",
    "SyncRunner",
    "compute_periods",
    "get_sync_runner",
    "SyncRunResult",
    "SyncService",
    "SyncTrigger",
    "get_sync_service",
]
