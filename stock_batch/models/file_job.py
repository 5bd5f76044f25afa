"""
ORM model for file-processing jobs.

Contract:
    FileJobModel persists one upload batch's processing state.  Status
    transitions are made with conditional UPDATEs by FileJobQueue; the
    ORM object is only written directly on INSERT.

Architecture: stock_batch/models. Imports from stock_kernel.db.base and
    stock_kernel.models (for the orders FK target).

Invariants enforced:
    - ``seq`` is allocated via SequenceService and is UNIQUE.
    - ``retry_count`` only ever grows (SQL increment on failure).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

import stock_kernel.models  # noqa: F401  # orders table for the FK
from stock_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from stock_batch.domain.types import FileJob


class FileJobModel(TrackedBase):
    """Persistent file-processing job record."""

    __tablename__ = "file_processing_jobs"

    __table_args__ = (
        Index("ix_file_jobs_status_created", "status", "created_at", "seq"),
        Index("ix_file_jobs_order_id", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    seq: Mapped[int | None] = mapped_column(nullable=True, unique=True)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    def to_dto(self) -> FileJob:
        from stock_batch.domain.types import FileJob, FileJobStatus

        return FileJob(
            job_id=self.id,
            order_id=self.order_id,
            status=FileJobStatus(self.status),
            payload=self.payload,
            retry_count=self.retry_count,
            last_error=self.last_error,
            created_at=self.created_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
            updated_at=self.updated_at,
            seq=self.seq,
        )

    def __repr__(self) -> str:
        return f"<FileJobModel {self.id} order={self.order_id} {self.status}>"
