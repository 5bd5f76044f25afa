"""
Settings Loader (``stock_config.loader``).

Responsibility
--------------
Reads the YAML settings file, applies environment overrides and parses the
result into the frozen dataclasses of ``stock_config.schema``.  Runtime
callers go through ``stock_config.get_active_settings()``; the functions
here are public so tests can exercise each step.

Architecture position
---------------------
**Config layer**.  Depends on PyYAML and ``stock_config.schema`` only; no
dependency on the kernel or the batch package.

Invariants enforced
-------------------
* Every parse or validation error raises ``ValueError`` with a descriptive
  message; required fields have no silent defaults.
* Environment overrides win over file values.  Empty variables are ignored.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Non-numeric override (``FILE_JOB_BATCH_SIZE=abc``)  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import math
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from stock_config.schema import (
    DatabaseSettings,
    MaterialPresetDef,
    PricingSettings,
    StockSettings,
    WorkerSettings,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "STOCK_CONFIG_PATH"

# Environment variable -> (section, key, type)
ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "DATABASE_URL": ("database", "url", str),
    "FILE_JOB_POLL_INTERVAL_MS": ("worker", "poll_interval_ms", int),
    "FILE_JOB_BATCH_SIZE": ("worker", "batch_size", int),
    "FILE_JOB_STALE_AFTER_SECONDS": ("worker", "stale_after_seconds", float),
    "PEDIDOS_UPLOAD_DIR": ("worker", "upload_dir", str),
    "IVA_RATE": ("pricing", "tax_rate", float),
    "CURRENCY_CODE": ("pricing", "currency", str),
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping at the top level")
    return data


def apply_env_overrides(
    raw: Mapping[str, Any], env: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``raw`` with the known environment variables applied."""
    merged = copy.deepcopy(dict(raw))
    for var, (section, key, cast) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value is None or not value.strip():
            continue
        try:
            converted = cast(value.strip())
        except ValueError:
            raise ValueError(
                f"Environment variable {var}={value!r} is not a valid {cast.__name__}"
            ) from None
        merged.setdefault(section, {})
        if merged[section] is None:
            merged[section] = {}
        merged[section][key] = converted
    return merged


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_database(data: Mapping[str, Any]) -> DatabaseSettings:
    url = data.get("url")
    if not url or not isinstance(url, str):
        raise ValueError("database.url is required")
    return DatabaseSettings(
        url=url,
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 10)),
        max_overflow=int(data.get("max_overflow", 5)),
    )


def parse_worker(data: Mapping[str, Any]) -> WorkerSettings:
    poll_interval_ms = int(data.get("poll_interval_ms", 3000))
    if poll_interval_ms <= 0:
        raise ValueError(f"worker.poll_interval_ms must be positive, got {poll_interval_ms}")

    batch_size = int(data.get("batch_size", 1))
    if batch_size <= 0:
        raise ValueError(f"worker.batch_size must be positive, got {batch_size}")

    stale_after = data.get("stale_after_seconds")
    if stale_after is not None:
        stale_after = float(stale_after)
        if stale_after <= 0:
            raise ValueError(
                f"worker.stale_after_seconds must be positive when set, got {stale_after}"
            )

    max_length = int(data.get("error_message_max_length", 500))
    if max_length <= 0:
        raise ValueError(
            f"worker.error_message_max_length must be positive, got {max_length}"
        )

    return WorkerSettings(
        poll_interval_ms=poll_interval_ms,
        batch_size=batch_size,
        stale_after_seconds=stale_after,
        error_message_max_length=max_length,
        upload_dir=str(data.get("upload_dir", "uploads/pedidos")),
    )


def parse_pricing(data: Mapping[str, Any]) -> PricingSettings:
    tax_rate = float(data.get("tax_rate", 0.19))
    if not math.isfinite(tax_rate) or tax_rate < 0:
        raise ValueError(f"pricing.tax_rate must be a non-negative number, got {tax_rate}")
    currency = str(data.get("currency", "CLP")).strip().upper()
    if len(currency) != 3:
        raise ValueError(f"pricing.currency must be a 3-letter code, got {currency!r}")
    return PricingSettings(tax_rate=tax_rate, currency=currency)


def parse_material(data: Mapping[str, Any]) -> MaterialPresetDef:
    """
    Parse one ``materials`` entry.

    Raises:
        ValueError: missing ids or label, non-positive width, negative price.
    """
    ids = tuple(str(i) for i in (data.get("ids") or ()))
    if not ids:
        raise ValueError(f"Material preset {data.get('label')!r} declares no ids")
    label = data.get("label")
    if not label:
        raise ValueError(f"Material preset {ids[0]!r} has no label")
    width_cm = float(data["width_cm"])
    if width_cm <= 0:
        raise ValueError(f"Material preset {label!r} must have a positive width_cm")
    price_per_meter = int(data["price_per_meter"])
    if price_per_meter < 0:
        raise ValueError(f"Material preset {label!r} must not have a negative price")
    return MaterialPresetDef(
        ids=ids, label=str(label), price_per_meter=price_per_meter, width_cm=width_cm,
    )


def parse_widths(data: Mapping[str, Any]) -> Mapping[str, float]:
    widths: dict[str, float] = {}
    for key, value in data.items():
        width = float(value)
        if width <= 0:
            raise ValueError(f"widths.{key} must be positive, got {value!r}")
        widths[str(key)] = width
    return MappingProxyType(widths)


def parse_settings(data: Mapping[str, Any], source: str | None = None) -> StockSettings:
    """Parse a merged settings mapping into ``StockSettings``."""
    materials = tuple(parse_material(m) for m in (data.get("materials") or ()))
    return StockSettings(
        database=parse_database(data.get("database") or {}),
        worker=parse_worker(data.get("worker") or {}),
        pricing=parse_pricing(data.get("pricing") or {}),
        materials=materials,
        widths=parse_widths(data.get("widths") or {}),
        source=source,
    )


def load_settings(
    path: Path | None = None, env: Mapping[str, str] | None = None,
) -> StockSettings:
    """Read ``path`` (or the packaged defaults), apply ``env``, parse."""
    env = env or {}
    if path is None and env.get(CONFIG_PATH_ENV):
        path = Path(env[CONFIG_PATH_ENV])
    settings_path = path or DEFAULTS_PATH
    raw = load_yaml_file(settings_path)
    merged = apply_env_overrides(raw, env)
    return parse_settings(merged, source=str(settings_path))
