"""
Materials -- material identifiers, presets and roll widths.

Responsibility:
    Normalizes free-form material identifiers ("DTF-57", "dtf_textil",
    " Vinilo Textil ") to lookup keys, and holds the static catalog tables
    the rest of the kernel consults: the preset table (label, price per
    metre, roll width) and the material -> roll width table.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  The catalog contents come from
    configuration (stock_config) and are handed in by the composition root;
    this module never reads files.

Invariants enforced:
    - Every key stored in a catalog is already normalized.
    - Width precedence: explicit positive override > width table > None.

Failure modes:
    - ValueError when a preset is declared with a non-positive width or
      a negative price.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping

# One whole inventory unit (one metre of roll) in centimetres.
UNIT_LENGTH_CM = 100

_STRIP_PATTERN = re.compile(r"[\s\-_]+")


def normalize_material_key(value: Any) -> str | None:
    """Lower-case ``value`` and drop whitespace, hyphens and underscores.

    Returns None for None or for values that normalize to the empty string.
    """
    if value is None:
        return None
    key = _STRIP_PATTERN.sub("", str(value).strip().lower())
    return key or None


def positive_width(value: Any) -> float | None:
    """Coerce ``value`` to a finite positive float, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


@dataclass(frozen=True, slots=True)
class MaterialPreset:
    """A known material family sold by length.

    ``price_per_meter`` is in minor-free currency units (whole pesos).
    """

    label: str
    price_per_meter: int
    width_cm: float

    def __post_init__(self) -> None:
        if self.width_cm <= 0:
            raise ValueError(
                f"Preset {self.label!r} must have a positive width, got {self.width_cm}"
            )
        if self.price_per_meter < 0:
            raise ValueError(
                f"Preset {self.label!r} must not have a negative price"
            )


class MaterialCatalog:
    """
    Static lookup tables for material presets and roll widths.

    Contract:
        Built once from configuration and shared read-only by the resolver,
        the metrics helper and the aggregate recomputer.  All lookups take
        raw identifiers and normalize them internally.

    Guarantees:
        - ``resolve_width`` applies override > width table > None.
        - Lookups never raise; unknown materials yield None.
    """

    def __init__(
        self,
        presets: Mapping[str, MaterialPreset] | None = None,
        widths: Mapping[str, float] | None = None,
    ):
        normalized_presets: dict[str, MaterialPreset] = {}
        for raw_key, preset in (presets or {}).items():
            key = normalize_material_key(raw_key)
            if key is not None:
                normalized_presets[key] = preset

        normalized_widths: dict[str, float] = {}
        for raw_key, width in (widths or {}).items():
            key = normalize_material_key(raw_key)
            width_cm = positive_width(width)
            if key is not None and width_cm is not None:
                normalized_widths[key] = width_cm

        self._presets = MappingProxyType(normalized_presets)
        self._widths = MappingProxyType(normalized_widths)

    @classmethod
    def from_families(
        cls,
        families: Iterable[tuple[Iterable[str], MaterialPreset]],
        widths: Mapping[str, float] | None = None,
    ) -> MaterialCatalog:
        """Build a catalog from (alias ids, preset) pairs."""
        presets: dict[str, MaterialPreset] = {}
        for ids, preset in families:
            for material_id in ids:
                presets[material_id] = preset
        return cls(presets=presets, widths=widths)

    @property
    def presets(self) -> Mapping[str, MaterialPreset]:
        return self._presets

    @property
    def widths(self) -> Mapping[str, float]:
        return self._widths

    def get_preset(self, material_id: Any) -> MaterialPreset | None:
        key = normalize_material_key(material_id)
        if key is None:
            return None
        return self._presets.get(key)

    def lookup_width(self, material_id: Any) -> float | None:
        """Width table entry for ``material_id``, if any."""
        key = normalize_material_key(material_id)
        if key is None:
            return None
        return self._widths.get(key)

    def resolve_width(
        self,
        material_id: Any,
        override: Any = None,
    ) -> float | None:
        """Effective roll width: positive override, else table entry, else None."""
        explicit = positive_width(override)
        if explicit is not None:
            return explicit
        return self.lookup_width(material_id)

    def __len__(self) -> int:
        return len(self._presets)

    def __repr__(self) -> str:
        return (
            f"MaterialCatalog(presets={len(self._presets)}, "
            f"widths={len(self._widths)})"
        )
