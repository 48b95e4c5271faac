"""
Model package exports.

Import all SQLAlchemy models here so metadata registration works without
extra imports.
"""

from db.models.amendment import Amendment
from db.models.contract import Contract
from db.models.inquiry import Inquiry
from db.models.supplier import Supplier
from db.models.sync_run import SyncRun, SyncRunStatus

__all__ = [
    "Amendment",
    "Contract",
    "Inquiry",
    "Supplier",
    "SyncRun",
    "SyncRunStatus",
]
