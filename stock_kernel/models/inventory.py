"""
Module: stock_kernel.models.inventory
Responsibility: ORM persistence for stocked materials and their sub-unit
    remainders.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, domain/, or outer packages.

Invariants enforced:
    - quantity >= 0 (CHECK ck_inventory_quantity_non_negative).  The stock
      ledger only ever changes it with guarded conditional UPDATEs, never a
      read-modify-write through the ORM.
    - 0 <= remainder_cm < 100 (CHECK ck_material_remainder_bounds).
    - At most one remainder row per inventory item (UNIQUE inventory_id).

Failure modes:
    - IntegrityError on duplicate item code or a second remainder row for
      the same item (the ledger recovers from the latter).
    - IntegrityError if a write would break one of the CHECK constraints.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase, UUIDString


class InventoryItem(TrackedBase):
    """
    A stocked product or roll material.

    Contract:
        ``quantity`` counts whole units.  For roll materials one unit is one
        metre of roll; for catalog products it is one piece.  The three
        price columns are the web, in-store and wholesale prices.

    Non-goals:
        - Does NOT know which material family it belongs to; the resolver
          matches items by ``code`` or ``name``.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )

    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_web: Mapped[Decimal | None] = mapped_column(nullable=True)
    price_store: Mapped[Decimal | None] = mapped_column(nullable=True)
    price_wsp: Mapped[Decimal | None] = mapped_column(nullable=True)

    remainder: Mapped[MaterialRemainder | None] = relationship(
        "MaterialRemainder",
        back_populates="inventory",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<InventoryItem {self.code}: {self.name} qty={self.quantity}>"


class MaterialRemainder(TrackedBase):
    """Centimetres already consumed from the currently open unit of a material."""

    __tablename__ = "material_remainders"

    __table_args__ = (
        CheckConstraint(
            "remainder_cm >= 0 AND remainder_cm < 100",
            name="ck_material_remainder_bounds",
        ),
    )

    inventory_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    remainder_cm: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    inventory: Mapped[InventoryItem] = relationship(
        "InventoryItem",
        back_populates="remainder",
    )

    def __repr__(self) -> str:
        return f"<MaterialRemainder {self.inventory_id}: {self.remainder_cm} cm>"
