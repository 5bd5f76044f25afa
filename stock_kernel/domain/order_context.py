"""
Order context -- material id and roll width recorded on an order.

Orders carry their material either in dedicated columns or somewhere in the
free-form payload written at checkout (top level, inside ``quote``, or on a
product line).  These helpers find it.  Payload keys are accepted in both
camelCase (as sent by the storefront) and snake_case.
"""

from __future__ import annotations

import json
from typing import Any, Mapping


def parse_payload(payload: Any) -> dict[str, Any]:
    """Order payload as a dict; JSON strings are decoded, anything else is {}."""
    if isinstance(payload, Mapping):
        return dict(payload)
    if isinstance(payload, (str, bytes)):
        try:
            decoded = json.loads(payload)
        except ValueError:
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}


def _lookup(mapping: Any, *keys: str) -> Any:
    if not isinstance(mapping, Mapping):
        return None
    for key in keys:
        if key in mapping and mapping[key] is not None:
            return mapping[key]
    return None


def payload_field(payload: Any, *keys: str) -> Any:
    """First non-null value among ``keys`` in an order payload, else None."""
    return _lookup(parse_payload(payload), *keys)


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def extract_material_id_from_order(order: Any) -> str | None:
    """
    Material id of an order.

    Order column first, then payload ``materialId``, ``material``,
    ``quote.materialId`` and finally the first product line with one.
    """
    own = getattr(order, "material_id", None)
    if isinstance(own, str) and own:
        return own

    payload = parse_payload(getattr(order, "payload", None))
    for candidate in (
        _lookup(payload, "materialId", "material_id"),
        _lookup(payload, "material"),
        _lookup(payload.get("quote"), "materialId", "material_id"),
    ):
        if isinstance(candidate, str):
            return candidate

    products = payload.get("products")
    if isinstance(products, list):
        for product in products:
            candidate = _lookup(product, "materialId", "material_id")
            if isinstance(candidate, str):
                return candidate
    return None


def extract_material_width_from_order(order: Any) -> float | None:
    """Roll width override of an order: column first, then positive payload widths."""
    own = getattr(order, "material_width_cm", None)
    if own is not None and not isinstance(own, bool):
        try:
            return float(own)
        except (TypeError, ValueError):
            pass

    payload = parse_payload(getattr(order, "payload", None))
    quote = payload.get("quote")
    for candidate in (
        _lookup(payload, "materialWidthCm", "material_width_cm"),
        _lookup(payload, "materialWidth", "material_width"),
        _lookup(quote, "materialWidthCm", "material_width_cm"),
        _lookup(quote, "materialWidth", "material_width"),
    ):
        if _is_positive_number(candidate):
            return float(candidate)
    return None
