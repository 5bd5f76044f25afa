"""
Settings schema.

Frozen dataclasses that the YAML defaults (and the environment overrides
applied on top of them) are parsed into.  This is the only shape runtime
code sees; nothing outside ``stock_config`` reads YAML or the environment.

Key distinction:
  StockSettings     = parsed, validated settings (data only)
  MaterialCatalog   = kernel lookup object built from them (bridges.py)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection parameters handed to ``stock_kernel.db.engine.Database``."""

    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5


@dataclass(frozen=True)
class WorkerSettings:
    """File-processing worker tuning."""

    poll_interval_ms: int = 3000
    batch_size: int = 1
    stale_after_seconds: float | None = None  # None disables the stale reset
    error_message_max_length: int = 500
    upload_dir: str = "uploads/pedidos"

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000


@dataclass(frozen=True)
class PricingSettings:
    """Tax rate applied when a first price is written to an order."""

    tax_rate: float = 0.19
    currency: str = "CLP"


@dataclass(frozen=True)
class MaterialPresetDef:
    """One material family: every alias id shares label, price and width."""

    ids: tuple[str, ...]
    label: str
    price_per_meter: int
    width_cm: float


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockSettings:
    """Root settings object returned by ``get_active_settings()``."""

    database: DatabaseSettings
    worker: WorkerSettings = field(default_factory=WorkerSettings)
    pricing: PricingSettings = field(default_factory=PricingSettings)
    materials: tuple[MaterialPresetDef, ...] = ()
    widths: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    source: str | None = None  # path of the YAML file the settings came from
