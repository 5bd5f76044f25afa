"""
Pricing -- rounding, per-metre material price and tax breakdown helpers.

Responsibility:
    The small amount of arithmetic the ledger and the aggregate recompute
    share: centimetre rounding, the price of a printed length, picking the
    per-metre price from an inventory item's price columns, and splitting
    a tax-inclusive total into subtotal and tax.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Rounding is half-up towards positive infinity (``floor(x + 0.5)``),
      so -2.5 rounds to -2 and 2.5 rounds to 3.  Ledger deltas and prices
      use the same rule.
    - Totals are whole currency units (the storefront sells in CLP).
    - ``subtotal + tax == total`` for every breakdown.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from stock_kernel.domain.materials import UNIT_LENGTH_CM

_HALF = Decimal("0.5")


def round_half_up(value: float | int | Decimal) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    if isinstance(value, Decimal):
        return math.floor(value + _HALF)
    return math.floor(value + 0.5)


def to_number(value: Any) -> float | None:
    """Finite float for numeric-looking ``value``, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, InvalidOperation):
        return None
    return number if math.isfinite(number) else None


def calculate_material_price(length_cm: float, price_per_meter: float) -> int:
    """Price of ``length_cm`` of material sold at ``price_per_meter``."""
    if not length_cm or length_cm <= 0:
        return 0
    if not price_per_meter or price_per_meter <= 0:
        return 0
    return round_half_up(length_cm / UNIT_LENGTH_CM * float(price_per_meter))


def first_configured_price(
    price_web: Any,
    price_store: Any,
    price_wsp: Any,
) -> float | None:
    """First non-null of web/store/wholesale price, as a float."""
    for candidate in (price_web, price_store, price_wsp):
        if candidate is not None:
            return to_number(candidate)
    return None


@dataclass(frozen=True, slots=True)
class TaxBreakdown:
    subtotal: int
    tax: int
    total: int


def calculate_tax_breakdown(total: Any, rate: float) -> TaxBreakdown:
    """
    Split a tax-inclusive ``total`` into subtotal and tax at ``rate``.

    A non-positive total or rate yields zero tax with subtotal == total.
    """
    safe_total = round_half_up(to_number(total) or 0)
    safe_rate = rate if isinstance(rate, (int, float)) and rate > 0 else 0
    if safe_total <= 0 or safe_rate <= 0:
        return TaxBreakdown(subtotal=safe_total, tax=0, total=safe_total)
    subtotal = round_half_up(safe_total / (1 + safe_rate))
    return TaxBreakdown(
        subtotal=subtotal,
        tax=safe_total - subtotal,
        total=safe_total,
    )
