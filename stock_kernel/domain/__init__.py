"""
Pure domain layer.

Measurement math, the material catalog, pricing helpers, order-context
extraction and the clock abstraction.  No dependencies on the ORM, the
database or the filesystem.
"""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.materials import (
    UNIT_LENGTH_CM,
    MaterialCatalog,
    MaterialPreset,
    normalize_material_key,
)
from stock_kernel.domain.metrics import (
    DEFAULT_IMAGE_DPI,
    AttachmentMetrics,
    calculate_attachment_metrics,
    measure,
)
from stock_kernel.domain.order_context import (
    extract_material_id_from_order,
    extract_material_width_from_order,
    payload_field,
)
from stock_kernel.domain.pricing import (
    TaxBreakdown,
    calculate_material_price,
    calculate_tax_breakdown,
    round_half_up,
)

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Materials
    "UNIT_LENGTH_CM",
    "MaterialCatalog",
    "MaterialPreset",
    "normalize_material_key",
    # Metrics
    "DEFAULT_IMAGE_DPI",
    "AttachmentMetrics",
    "calculate_attachment_metrics",
    "measure",
    # Order context
    "extract_material_id_from_order",
    "extract_material_width_from_order",
    "payload_field",
    # Pricing
    "TaxBreakdown",
    "calculate_material_price",
    "calculate_tax_breakdown",
    "round_half_up",
]
