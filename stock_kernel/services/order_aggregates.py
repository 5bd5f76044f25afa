"""
OrderAggregateService -- recompute an order's file totals and charge the delta.

Responsibility:
    After attachments are added to an order, recomputes total printed area,
    total length along the roll and the material price, stores them on the
    order payload, prices the order the first time it gets a positive file
    price, and charges the stock ledger only for the length that changed
    since the previous recompute.

Architecture position:
    Kernel > Services.  Called by the file-job processor (stock_batch) in
    the same transaction that created the attachments.

Invariants enforced:
    - Idempotent: the stored ``filesTotalLengthCm`` is the baseline, so
      a second recompute without attachment changes produces a zero delta
      and no ledger call.
    - The order row is locked FOR UPDATE before the baseline is read, so
      two recomputes of the same order are applied one after the other.
    - Non-finite lengths are stored as 0.
    - Totals are written under the storefront's camelCase keys; older
      snake_case totals are still read as the baseline and then dropped.

Failure modes:
    - InsufficientStockError from the ledger propagates; the caller's
      transaction (attachments included) rolls back.
    - A missing order yields None rather than an exception.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from stock_kernel.domain.order_context import (
    extract_material_id_from_order,
    extract_material_width_from_order,
    parse_payload,
    payload_field,
)
from stock_kernel.domain.pricing import (
    calculate_material_price,
    calculate_tax_breakdown,
    first_configured_price,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.order import Order
from stock_kernel.services.material_resolver import MaterialResolver
from stock_kernel.services.stock_ledger import StockAdjustment, StockLedgerService

logger = get_logger("services.order_aggregates")

AREA_KEY = "filesTotalAreaCm2"
LENGTH_KEY = "filesTotalLengthCm"
PRICE_KEY = "filesTotalPrice"

_LEGACY_KEYS = {
    AREA_KEY: "files_total_area_cm2",
    LENGTH_KEY: "files_total_length_cm",
    PRICE_KEY: "files_total_price",
}


@dataclass(frozen=True, slots=True)
class PricingPolicy:
    """Tax rate and currency applied when an order is first priced."""

    tax_rate: float = 0.19
    currency: str = "CLP"


@dataclass(frozen=True, slots=True)
class AggregateTotals:
    """Recomputed file totals of one order."""

    area_cm2: float
    length_cm: float
    price: int | float | None
    delta_length_cm: float = 0.0
    adjustment: StockAdjustment | None = None


def _numeric(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class OrderAggregateService:
    """
    Recompute file aggregates for one order.

    Contract:
        Works inside the caller's transaction; flushes, never commits.

    Guarantees:
        - The ledger is called with ``new_length - baseline`` only when
          that difference is nonzero.
        - The headline total is only written when the order had no
          positive total before.
    """

    def __init__(
        self,
        session: Session,
        resolver: MaterialResolver,
        ledger: StockLedgerService,
        pricing: PricingPolicy | None = None,
    ):
        self._session = session
        self._resolver = resolver
        self._ledger = ledger
        self._pricing = pricing or PricingPolicy()

    def _load_order(self, order_id: UUID) -> Order | None:
        return self._session.execute(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.attachments))
            .with_for_update(of=Order)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def recompute(self, order_id: UUID) -> AggregateTotals | None:
        """
        Recompute totals for ``order_id`` and charge the length delta.

        Returns:
            AggregateTotals, or None when the order does not exist.

        Raises:
            InsufficientStockError: The extra length is not in stock.
        """
        order = self._load_order(order_id)
        if order is None:
            logger.warning("order_recompute_missing", extra={"order_id": str(order_id)})
            return None

        payload = parse_payload(order.payload)
        baseline = _numeric(
            payload_field(payload, LENGTH_KEY, _LEGACY_KEYS[LENGTH_KEY])
        ) or 0.0

        attachments = list(order.attachments)
        total_area = sum((a.area_cm2 or 0.0) for a in attachments)

        material_id = extract_material_id_from_order(order)
        width_cm = self._resolver.catalog.resolve_width(
            material_id, extract_material_width_from_order(order),
        )

        total_length = 0.0
        for attachment in attachments:
            if attachment.length_cm is not None:
                total_length += attachment.length_cm
            elif attachment.area_cm2 and width_cm:
                total_length += attachment.area_cm2 / width_cm
        if not math.isfinite(total_length):
            total_length = 0.0

        total_price = payload_field(payload, PRICE_KEY, _LEGACY_KEYS[PRICE_KEY])
        inventory = self._resolver.find_inventory(material_id)
        if inventory is not None and width_cm and total_length > 0:
            price_per_meter = first_configured_price(
                inventory.price_web, inventory.price_store, inventory.price_wsp,
            )
            if price_per_meter is not None and price_per_meter > 0:
                total_price = calculate_material_price(total_length, price_per_meter)

        next_payload = {k: v for k, v in payload.items() if k not in _LEGACY_KEYS.values()}
        next_payload["attachments"] = [a.summary() for a in attachments]
        next_payload[AREA_KEY] = total_area
        next_payload[LENGTH_KEY] = total_length
        if total_price is not None:
            next_payload[PRICE_KEY] = total_price
        else:
            next_payload.pop(PRICE_KEY, None)
        order.payload = next_payload

        priced = self._apply_first_price(order, total_price)
        self._session.flush()

        delta = total_length - baseline
        adjustment = None
        if delta:
            adjustment = self._ledger.adjust_material_stock(material_id, delta)

        logger.info(
            "order_aggregates_recomputed",
            extra={
                "order_id": str(order.id),
                "attachment_count": len(attachments),
                "files_total_area_cm2": total_area,
                "files_total_length_cm": total_length,
                "files_total_price": total_price,
                "baseline_length_cm": baseline,
                "delta_length_cm": delta,
                "first_priced": priced,
            },
        )
        return AggregateTotals(
            area_cm2=total_area,
            length_cm=total_length,
            price=total_price,
            delta_length_cm=delta,
            adjustment=adjustment,
        )

    def _apply_first_price(self, order: Order, total_price: Any) -> bool:
        current_total = order.total
        if current_total is not None and current_total > 0:
            return False
        price = _numeric(total_price)
        if price is None or price <= 0:
            return False

        breakdown = calculate_tax_breakdown(price, self._pricing.tax_rate)
        order.total = Decimal(breakdown.total)
        order.subtotal = Decimal(breakdown.subtotal)
        order.tax_total = Decimal(breakdown.tax)
        order.currency = order.currency or self._pricing.currency
        return True
