"""
db/models/sync_run.py

Sync run history for the health and admin surface.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class SyncRunStatus:
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class SyncRun(Base, TimestampMixin):
    __tablename__ = "sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=SyncRunStatus.RUNNING,
    )
    trigger: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="schedule, api",
    )
    periods: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    report_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Serialized SyncReport",
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_sync_runs_status", "status"),
        Index("ix_sync_runs_created_at", "created_at"),
    )
