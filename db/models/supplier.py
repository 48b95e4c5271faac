"""
db/models/supplier.py

Supplier identity rows; name is the primary identity, tax id is unique when known.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class Supplier(Base, TimestampMixin):
    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    tax_id: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        unique=True,
        comment="IČO",
    )
    founded_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    employee_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
