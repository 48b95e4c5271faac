"""
Schemas for contract listing, detail and statistics endpoints.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class AmendmentResponse(BaseModel):
    id: int
    amount: Decimal
    amendment_date: date


class ContractResponse(BaseModel):
    id: int
    external_id: str | None = None
    title: str
    amount: Decimal
    category: str
    contract_date: date
    supplier_name: str
    authority_name: str
    procurement_type: str
    latitude: float | None = None
    longitude: float | None = None


class ContractDetailResponse(ContractResponse):
    amendments: list[AmendmentResponse] = Field(default_factory=list)


class ContractListResponse(BaseModel):
    items: list[ContractResponse] = Field(default_factory=list)
    total: int
    page: int
    limit: int


class TopSupplierResponse(BaseModel):
    name: str
    contracts: int
    total_amount: Decimal


class TopSupplierListResponse(BaseModel):
    items: list[TopSupplierResponse] = Field(default_factory=list)


class CategoryStatsResponse(BaseModel):
    category: str
    contracts: int
    total_amount: Decimal
    average_amount: Decimal


class CategoryStatsListResponse(BaseModel):
    items: list[CategoryStatsResponse] = Field(default_factory=list)
