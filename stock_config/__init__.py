"""
stock_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads the settings file
    or the environment directly.

Architecture position:
    Configuration -- YAML defaults plus environment overrides.  This
    package sits above ``stock_kernel`` and below ``stock_batch``.  The
    kernel MUST NEVER import from ``stock_config``; ``bridges`` translates
    settings into kernel objects.

Invariants enforced:
    - Single entrypoint: all runtime settings flow through
      ``get_active_settings()``.
    - Validation happens at load time; a returned ``StockSettings`` is
      always usable.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- validation failure or malformed override.

Audit relevance:
    Every successful ``get_active_settings()`` call emits a
    ``stock_config_loaded`` log entry naming the source file and the
    effective worker and pricing values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from stock_config.loader import load_settings
from stock_config.schema import StockSettings

_logger = logging.getLogger("stock_kernel.config")


def get_active_settings(
    config_path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> StockSettings:
    """
    Load, override and validate the active settings.

    Args:
        config_path: Settings file to read.  Defaults to ``STOCK_CONFIG_PATH``
            when set, else the packaged ``defaults.yaml``.
        env: Environment mapping used for overrides.  Defaults to
            ``os.environ``.

    Returns:
        StockSettings -- frozen, validated settings.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        ValueError: If validation fails.
    """
    env = os.environ if env is None else env
    path = Path(config_path) if config_path is not None else None
    settings = load_settings(path, env)

    _logger.info(
        "stock_config_loaded",
        extra={
            "source": settings.source,
            "material_family_count": len(settings.materials),
            "width_entry_count": len(settings.widths),
            "batch_size": settings.worker.batch_size,
            "poll_interval_ms": settings.worker.poll_interval_ms,
            "stale_reset_enabled": settings.worker.stale_after_seconds is not None,
            "tax_rate": settings.pricing.tax_rate,
            "currency": settings.pricing.currency,
        },
    )
    return settings


__all__ = [
    "StockSettings",
    "get_active_settings",
]
