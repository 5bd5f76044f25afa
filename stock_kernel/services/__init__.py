"""Services for the stock kernel (write side)."""

from stock_kernel.services.material_resolver import MaterialResolution, MaterialResolver
from stock_kernel.services.order_aggregates import (
    AggregateTotals,
    OrderAggregateService,
    PricingPolicy,
)
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockAdjustment, StockLedgerService

__all__ = [
    "AggregateTotals",
    "MaterialResolution",
    "MaterialResolver",
    "OrderAggregateService",
    "PricingPolicy",
    "SequenceService",
    "StockAdjustment",
    "StockLedgerService",
]
