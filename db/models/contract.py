"""
db/models/contract.py

Contract rows ingested from registry dumps.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Float, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin


class Contract(Base, TimestampMixin):
    __tablename__ = "contracts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
        comment="Upstream idSmlouvy / idVerze when published",
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    category: Mapped[str] = mapped_column(String(120), nullable=False)
    contract_date: Mapped[date] = mapped_column(Date, nullable=False)
    supplier_name: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    authority_name: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    procurement_type: Mapped[str] = mapped_column(String(120), nullable=False)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    amendments: Mapped[list["Amendment"]] = relationship(  # noqa: F821
        back_populates="contract",
        order_by="Amendment.amendment_date",
    )

    __table_args__ = (
        Index("ix_contracts_contract_date", "contract_date"),
        Index("ix_contracts_supplier_name", "supplier_name"),
        Index("ix_contracts_category", "category"),
        Index(
            "ix_contracts_natural_key",
            "title",
            "amount",
            "contract_date",
            "supplier_name",
            "authority_name",
        ),
    )
