"""
StockLedgerService -- continuous length consumption against whole-unit stock.

Responsibility:
    Converts a signed length delta for one material (positive = consume,
    negative = return) into whole-unit changes of InventoryItem.quantity
    plus a persisted sub-unit remainder, so that no fraction of a metre is
    ever lost or counted twice across orders.  Also applies the whole-unit
    catalog decrements and the initial quote consumption made when an order
    is placed.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the order aggregate
    recompute and by the order-placement handlers (outside this package).

Invariants enforced:
    - 0 <= remainder_cm < UNIT_LENGTH_CM after every successful call.
    - quantity >= 0 at all times: every decrement is a conditional
      ``UPDATE ... WHERE quantity >= :n`` whose affected-row count is
      checked.  Increments are plain ``quantity = quantity + :n``.
    - Conservation: tracked length is ``quantity * 100 - remainder_cm``
      and a successful call lowers it by exactly the rounded delta.
    - The inventory row and the remainder row are read FOR UPDATE, so
      remainder read-modify-writes for one material are serialized.

Failure modes:
    - InsufficientStockError: consumption exceeds available length (or a
      catalog decrement exceeds available units).  Raised before any write
      of this call; nothing is left half-applied.
    - Unknown or unmatched materials are a no-op (returns None), logged at
      WARNING as ``stock_adjust_material_unresolved``.

Audit relevance:
    Every applied adjustment logs ``stock_adjusted`` with the before and
    after quantity and remainder.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.materials import UNIT_LENGTH_CM
from stock_kernel.domain.pricing import round_half_up, to_number
from stock_kernel.exceptions import InsufficientStockError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import InventoryItem, MaterialRemainder
from stock_kernel.services.material_resolver import MaterialResolver

logger = get_logger("services.stock_ledger")

# Deltas smaller than this (in cm) are ignored.
MIN_DELTA_CM = 0.01


@dataclass(frozen=True, slots=True)
class StockAdjustment:
    """Applied ledger change for one material."""

    material_id: str
    inventory_id: UUID
    delta_cm: int
    whole_units: int
    quantity_before: int
    quantity_after: int
    remainder_before: int
    remainder_after: int

    @property
    def tracked_before_cm(self) -> int:
        return self.quantity_before * UNIT_LENGTH_CM - self.remainder_before

    @property
    def tracked_after_cm(self) -> int:
        return self.quantity_after * UNIT_LENGTH_CM - self.remainder_after


class StockLedgerService:
    """
    Length ledger over InventoryItem / MaterialRemainder.

    Contract:
        Operates inside the caller's transaction.  Flushes, never commits:
        an InsufficientStockError raised later in the same transaction (or
        by a later step of the caller) rolls everything back together.

    Guarantees:
        - A call either applies its quantity change and remainder together
          or raises before touching either.
        - Returning material never fails.

    Non-goals:
        - No reservations or holds; consumption is immediate.
        - A single stock location per item.
    """

    def __init__(self, session: Session, resolver: MaterialResolver):
        self._session = session
        self._resolver = resolver

    # ------------------------------------------------------------------
    # Length ledger
    # ------------------------------------------------------------------

    def adjust_material_stock(
        self,
        material_id: str | None,
        delta_length_cm: Any,
    ) -> StockAdjustment | None:
        """
        Apply a signed length delta (cm) to a material's stock.

        Returns the applied StockAdjustment, or None for a no-op (no
        material, negligible delta, unresolved material, or a delta that
        rounds to zero).

        Raises:
            InsufficientStockError: Consumption exceeds available length.
        """
        if not material_id:
            logger.debug("stock_adjust_skipped", extra={"reason": "no_material"})
            return None

        delta = to_number(delta_length_cm)
        if delta is None or abs(delta) < MIN_DELTA_CM:
            logger.debug(
                "stock_adjust_skipped",
                extra={"reason": "negligible_delta", "requested_material": material_id},
            )
            return None

        item = self._resolver.find_inventory(material_id, for_update=True)
        if item is None:
            logger.warning(
                "stock_adjust_material_unresolved",
                extra={"requested_material": material_id, "delta_length_cm": delta},
            )
            return None

        delta_cm = round_half_up(delta)
        if delta_cm == 0:
            logger.debug(
                "stock_adjust_skipped",
                extra={"reason": "rounds_to_zero", "requested_material": material_id},
            )
            return None

        remainder_row = self._load_remainder(item.id)
        remainder_before = remainder_row.remainder_cm if remainder_row else 0
        quantity_before = item.quantity

        if delta_cm > 0:
            whole_units, remainder_after = self._consume(
                material_id, item, delta_cm, remainder_before,
            )
            quantity_after = quantity_before - whole_units
        else:
            whole_units, remainder_after = self._return(item, delta_cm, remainder_before)
            quantity_after = quantity_before + whole_units

        self._store_remainder(item.id, remainder_row, remainder_before, remainder_after)

        adjustment = StockAdjustment(
            material_id=material_id,
            inventory_id=item.id,
            delta_cm=delta_cm,
            whole_units=whole_units,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            remainder_before=remainder_before,
            remainder_after=remainder_after,
        )
        logger.info(
            "stock_adjusted",
            extra={
                "requested_material": material_id,
                "inventory_id": str(item.id),
                "delta_cm": delta_cm,
                "whole_units": whole_units,
                "quantity_before": quantity_before,
                "quantity_after": quantity_after,
                "remainder_before": remainder_before,
                "remainder_after": remainder_after,
            },
        )
        return adjustment

    def _consume(
        self,
        material_id: str,
        item: InventoryItem,
        delta_cm: int,
        remainder_cm: int,
    ) -> tuple[int, int]:
        available_cm = item.quantity * UNIT_LENGTH_CM - remainder_cm
        if delta_cm > available_cm:
            logger.warning(
                "stock_insufficient",
                extra={
                    "requested_material": material_id,
                    "inventory_id": str(item.id),
                    "requested_cm": delta_cm,
                    "available_cm": available_cm,
                    "remainder_cm": remainder_cm,
                },
            )
            raise InsufficientStockError(
                material_id=material_id,
                inventory_id=item.id,
                requested_cm=delta_cm,
                available_cm=available_cm,
                remainder_cm=remainder_cm,
            )

        whole_units, remainder_after = divmod(remainder_cm + delta_cm, UNIT_LENGTH_CM)
        if whole_units > 0 and not self._conditional_decrement(item, whole_units):
            raise InsufficientStockError(
                material_id=material_id,
                inventory_id=item.id,
                requested_cm=delta_cm,
                available_cm=available_cm,
                remainder_cm=remainder_cm,
                requested_units=whole_units,
                available_units=item.quantity,
            )
        return whole_units, remainder_after

    def _return(
        self,
        item: InventoryItem,
        delta_cm: int,
        remainder_cm: int,
    ) -> tuple[int, int]:
        running = remainder_cm + delta_cm
        units_to_return = 0
        while running < 0:
            running += UNIT_LENGTH_CM
            units_to_return += 1

        if units_to_return > 0:
            self._session.execute(
                update(InventoryItem)
                .where(InventoryItem.id == item.id)
                .values(quantity=InventoryItem.quantity + units_to_return)
                .execution_options(synchronize_session=False)
            )
            self._session.expire(item, ["quantity"])
        return units_to_return, running % UNIT_LENGTH_CM

    def _conditional_decrement(self, item: InventoryItem, units: int) -> bool:
        """Decrement ``quantity`` by ``units`` only if enough remain."""
        result = self._session.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item.id, InventoryItem.quantity >= units)
            .values(quantity=InventoryItem.quantity - units)
            .execution_options(synchronize_session=False)
        )
        self._session.expire(item, ["quantity"])
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Remainder row
    # ------------------------------------------------------------------

    def _load_remainder(self, inventory_id: UUID) -> MaterialRemainder | None:
        return self._session.execute(
            select(MaterialRemainder)
            .where(MaterialRemainder.inventory_id == inventory_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _store_remainder(
        self,
        inventory_id: UUID,
        row: MaterialRemainder | None,
        expected_cm: int,
        remainder_cm: int,
    ) -> None:
        if row is not None:
            row.remainder_cm = remainder_cm
            self._session.flush()
            return

        # First ledger touch for this material.
        savepoint = self._session.begin_nested()
        try:
            self._session.add(
                MaterialRemainder(inventory_id=inventory_id, remainder_cm=remainder_cm)
            )
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            logger.debug(
                "material_remainder_race_retry",
                extra={"inventory_id": str(inventory_id)},
            )
            savepoint.rollback()
            row = self._load_remainder(inventory_id)
            # The concurrent creator must have left the value we computed from.
            if row is None or row.remainder_cm != expected_cm:
                raise
            row.remainder_cm = remainder_cm
            self._session.flush()

    def get_remainder_cm(self, inventory_id: UUID) -> int:
        """Current remainder for an inventory item (0 if never touched)."""
        row = self._session.execute(
            select(MaterialRemainder)
            .where(MaterialRemainder.inventory_id == inventory_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return row.remainder_cm if row else 0

    # ------------------------------------------------------------------
    # Order placement
    # ------------------------------------------------------------------

    def decrement_inventory_item(self, item_id: UUID | None, quantity: Any) -> bool:
        """
        Take ``quantity`` whole units of a catalog item.

        Returns False (no-op) for a missing item id, a missing item or a
        non-positive quantity, True once applied.

        Raises:
            InsufficientStockError: Fewer than ``quantity`` units remain.
        """
        units = to_number(quantity)
        if not item_id or units is None or units <= 0:
            return False
        units = int(units)

        item = self._session.execute(
            select(InventoryItem)
            .where(InventoryItem.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            logger.warning("inventory_item_not_found", extra={"inventory_id": str(item_id)})
            return False

        quantity_before = item.quantity
        if quantity_before < units or not self._conditional_decrement(item, units):
            raise InsufficientStockError(
                inventory_id=item.id,
                requested_units=units,
                available_units=quantity_before,
                item_code=item.code,
                item_name=item.name,
            )
        logger.info(
            "inventory_item_decremented",
            extra={
                "inventory_id": str(item.id),
                "item_code": item.code,
                "units": units,
                "quantity_before": quantity_before,
            },
        )
        return True

    def consume_catalog_products(
        self,
        products: Iterable[Mapping[str, Any]] | None,
    ) -> int:
        """Decrement every ``{id, quantity}`` product line; returns lines applied."""
        if not products:
            return 0
        applied = 0
        for product in products:
            if not isinstance(product, Mapping):
                continue
            item_id = _as_uuid(product.get("id"))
            if item_id is None:
                continue
            if self.decrement_inventory_item(item_id, product.get("quantity")):
                applied += 1
        return applied

    def consume_quote(
        self,
        material_id: str | None,
        used_height_cm: Any,
    ) -> StockAdjustment | None:
        """Initial consumption of a length quote at order placement."""
        used = to_number(used_height_cm)
        if used is None or used <= 0:
            return None
        return self.adjust_material_stock(material_id, used)


def _as_uuid(value: Any) -> UUID | None:
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            return None
    return None
