"""
app/repositories package marker.
"""

from app.repositories.contract_query_repository import ContractFilters, ContractQueryRepository
from app.repositories.contract_store import ContractStore, SqlAlchemyContractStore, open_contract_store

__all__ = [
    "ContractFilters",
    "ContractQueryRepository",
    "ContractStore",
    "SqlAlchemyContractStore",
    "open_contract_store",
]
