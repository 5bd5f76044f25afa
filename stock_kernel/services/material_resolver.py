"""
MaterialResolver -- free-form material identifier to inventory and preset.

Responsibility:
    Maps a material identifier as written by the storefront ("DTF-57",
    "Vinilo Textil", an inventory code) to the live InventoryItem that
    tracks its stock and to the static preset describing the material
    family, plus the nominal roll width.

Architecture position:
    Kernel > Services.  Read-only; used by the stock ledger (initial and
    incremental consumption) and by the aggregate recompute (pricing and
    width).

Invariants enforced:
    - Inventory matching considers the raw identifier, its lower- and
      upper-case forms and its normalized key, against both ``code`` and
      ``name``.
    - Nominal width is the preset width, else the width-table entry.

Failure modes:
    - ``require()`` raises InvalidMaterialError when neither an inventory
      item nor a preset matches.  ``resolve()`` never raises.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from stock_kernel.domain.materials import (
    MaterialCatalog,
    MaterialPreset,
    normalize_material_key,
)
from stock_kernel.exceptions import InvalidMaterialError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import InventoryItem

logger = get_logger("services.material_resolver")


@dataclass(frozen=True)
class MaterialResolution:
    """Outcome of resolving one material identifier."""

    material_id: str | None
    key: str | None
    inventory: InventoryItem | None
    preset: MaterialPreset | None
    nominal_width_cm: float | None

    @property
    def is_valid(self) -> bool:
        return self.inventory is not None or self.preset is not None

    @property
    def label(self) -> str | None:
        if self.inventory is not None:
            return self.inventory.name
        if self.preset is not None:
            return self.preset.label
        return None


def identifier_candidates(material_id: str) -> list[str]:
    """Raw id, lower, upper and normalized key, de-duplicated in that order."""
    candidates = [material_id, material_id.lower(), material_id.upper()]
    key = normalize_material_key(material_id)
    if key is not None:
        candidates.append(key)
    return list(dict.fromkeys(c for c in candidates if c))


class MaterialResolver:
    """
    Resolve material identifiers against inventory and the static catalog.

    Contract:
        Receives the caller's Session and the shared MaterialCatalog.
        Performs SELECTs only; never flushes.

    Guarantees:
        - ``find_inventory(..., for_update=True)`` row-locks the matched
          item for the rest of the caller's transaction and refreshes any
          cached copy in the session.
    """

    def __init__(self, session: Session, catalog: MaterialCatalog):
        self._session = session
        self._catalog = catalog

    @property
    def catalog(self) -> MaterialCatalog:
        return self._catalog

    def find_inventory(
        self,
        material_id: str | None,
        for_update: bool = False,
    ) -> InventoryItem | None:
        """InventoryItem whose code or name matches ``material_id``, if any."""
        if not material_id:
            return None
        candidates = identifier_candidates(str(material_id))
        if not candidates:
            return None

        stmt = (
            select(InventoryItem)
            .where(
                or_(
                    InventoryItem.code.in_(candidates),
                    InventoryItem.name.in_(candidates),
                )
            )
            .order_by(InventoryItem.code)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self._session.execute(stmt).scalars().first()

    def resolve(self, material_id: str | None) -> MaterialResolution:
        """Inventory item, preset and nominal width for ``material_id``."""
        key = normalize_material_key(material_id)
        inventory = self.find_inventory(material_id)
        preset = self._catalog.get_preset(material_id)
        nominal_width = (
            preset.width_cm if preset is not None
            else self._catalog.lookup_width(material_id)
        )
        resolution = MaterialResolution(
            material_id=material_id,
            key=key,
            inventory=inventory,
            preset=preset,
            nominal_width_cm=nominal_width,
        )
        logger.debug(
            "material_resolved",
            extra={
                "material_key": key,
                "inventory_id": str(inventory.id) if inventory else None,
                "has_preset": preset is not None,
                "nominal_width_cm": nominal_width,
            },
        )
        return resolution

    def require(self, material_id: str | None) -> MaterialResolution:
        """Like ``resolve()``, but an unknown material is an error."""
        resolution = self.resolve(material_id)
        if not resolution.is_valid:
            logger.warning(
                "material_invalid",
                extra={"requested_material": material_id},
            )
            raise InvalidMaterialError(material_id)
        return resolution
