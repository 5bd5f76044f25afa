"""
Config -> Kernel Bridges.

Functions that convert settings into kernel objects.  They live in
stock_config (the producer) because the kernel must never import
stock_config.

Usage:
    from stock_config.bridges import build_material_catalog, build_pricing_policy

    settings = get_active_settings()
    catalog = build_material_catalog(settings)
"""

from __future__ import annotations

from stock_kernel.domain.materials import MaterialCatalog, MaterialPreset
from stock_kernel.services.order_aggregates import PricingPolicy

from stock_config.schema import StockSettings


def build_material_catalog(settings: StockSettings) -> MaterialCatalog:
    """Build the kernel MaterialCatalog from the ``materials`` and ``widths`` sections."""
    families = [
        (
            definition.ids,
            MaterialPreset(
                label=definition.label,
                price_per_meter=definition.price_per_meter,
                width_cm=definition.width_cm,
            ),
        )
        for definition in settings.materials
    ]
    return MaterialCatalog.from_families(families, widths=settings.widths)


def build_pricing_policy(settings: StockSettings) -> PricingPolicy:
    return PricingPolicy(
        tax_rate=settings.pricing.tax_rate,
        currency=settings.pricing.currency,
    )
