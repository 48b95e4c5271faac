"""
db/models/amendment.py

Amendments attached to exactly one contract.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, CreatedAtMixin


class Amendment(Base, CreatedAtMixin):
    __tablename__ = "amendments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("contracts.id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    amendment_date: Mapped[date] = mapped_column(Date, nullable=False)

    contract: Mapped["Contract"] = relationship(back_populates="amendments")  # noqa: F821

    __table_args__ = (
        Index(
            "ix_amendments_contract_amount_date",
            "contract_id",
            "amount",
            "amendment_date",
        ),
    )
