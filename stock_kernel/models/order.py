"""
Module: stock_kernel.models.order
Responsibility: ORM persistence for orders (the fields the aggregate
    recompute reads and writes) and their measured file attachments.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Attachments are immutable once created; nothing in the kernel updates
      them.
    - ``payload`` is replaced wholesale on every write (a fresh dict), so
      JSON change tracking never depends on in-place mutation.

Failure modes:
    - IntegrityError if an attachment references a missing order.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString


class Order(TrackedBase):
    """
    A customer order ("pedido").

    Contract:
        ``payload`` holds the free-form checkout data plus the file totals
        maintained by the aggregate recompute: ``attachments``,
        ``filesTotalAreaCm2``, ``filesTotalLengthCm`` and
        ``filesTotalPrice``.  ``filesTotalLengthCm`` is the baseline for
        the next ledger delta.

    Non-goals:
        - Payment, status workflow and customer identity live outside this
          model.
    """

    __tablename__ = "orders"

    material_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    material_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    material_width_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    total: Mapped[Decimal | None] = mapped_column(nullable=True)
    subtotal: Mapped[Decimal | None] = mapped_column(nullable=True)
    tax_total: Mapped[Decimal | None] = mapped_column(nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    cliente_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    attachments: Mapped[list[Attachment]] = relationship(
        "Attachment",
        back_populates="order",
        order_by="Attachment.created_at",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Order {self.id} material={self.material_id}>"


class Attachment(Base):
    """One measured file uploaded for an order."""

    __tablename__ = "order_attachments"

    __table_args__ = (
        Index("ix_order_attachments_order_id", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    width_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    height_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    area_cm2: Mapped[float | None] = mapped_column(Float, nullable=True)
    length_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    data: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    order: Mapped[Order] = relationship("Order", back_populates="attachments")

    def summary(self) -> dict[str, Any]:
        """Entry stored in the order payload's ``attachments`` list."""
        return {
            "id": str(self.id),
            "filename": self.filename,
            "mimeType": self.mime_type,
            "sizeBytes": self.size_bytes,
            "widthCm": self.width_cm,
            "heightCm": self.height_cm,
            "areaCm2": self.area_cm2,
            "lengthCm": self.length_cm,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Attachment {self.filename} order={self.order_id}>"
