"""
Cached contract read endpoints.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.repositories.contract_query_repository import ContractFilters
from app.schemas.contracts import (
    CategoryStatsListResponse,
    ContractDetailResponse,
    ContractListResponse,
    TopSupplierListResponse,
)
from app.services.contract_query_service import ContractQueryService, get_contract_query_service

router = APIRouter(tags=["contracts"])


@router.get("/contracts", response_model=ContractListResponse)
def list_contracts(
    query: str | None = Query(default=None, description="Substring match on the contract title"),
    supplier: str | None = Query(default=None, description="Substring match on the supplier name"),
    authority: str | None = Query(default=None, description="Substring match on the contracting authority"),
    category: str | None = Query(default=None),
    min_amount: Decimal | None = Query(default=None, ge=0),
    max_amount: Decimal | None = Query(default=None, ge=0),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    service: ContractQueryService = Depends(get_contract_query_service),
) -> ContractListResponse:
    filters = ContractFilters(
        query=query.strip() if query and query.strip() else None,
        supplier=supplier.strip() if supplier and supplier.strip() else None,
        authority=authority.strip() if authority and authority.strip() else None,
        category=category or None,
        min_amount=min_amount,
        max_amount=max_amount,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return ContractListResponse.model_validate(service.list_contracts(filters))


@router.get("/contracts/{contract_id}", response_model=ContractDetailResponse)
def get_contract(
    contract_id: int,
    service: ContractQueryService = Depends(get_contract_query_service),
) -> ContractDetailResponse:
    contract = service.get_contract(contract_id)
    if contract is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Contract not found: {contract_id}")
    return ContractDetailResponse.model_validate(contract)


@router.get("/stats/top-suppliers", response_model=TopSupplierListResponse)
def top_suppliers(
    limit: int = Query(default=10, ge=1, le=100),
    service: ContractQueryService = Depends(get_contract_query_service),
) -> TopSupplierListResponse:
    return TopSupplierListResponse.model_validate(service.top_suppliers(limit))


@router.get("/stats/categories", response_model=CategoryStatsListResponse)
def category_stats(
    service: ContractQueryService = Depends(get_contract_query_service),
) -> CategoryStatsListResponse:
    return CategoryStatsListResponse.model_validate(service.category_stats())
