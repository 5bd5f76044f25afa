"""Tests for stock_kernel.services.material_resolver."""

import pytest

from stock_kernel.exceptions import InvalidMaterialError
from stock_kernel.services.material_resolver import identifier_candidates


class TestIdentifierCandidates:
    def test_raw_cases_and_key(self):
        assert identifier_candidates("Dtf-57") == ["Dtf-57", "dtf-57", "DTF-57", "dtf57"]

    def test_duplicates_removed(self):
        assert identifier_candidates("dtf") == ["dtf", "DTF"]


class TestFindInventory:
    def test_matches_code_case_insensitively(self, resolver, make_inventory):
        item = make_inventory(code="DTF-57", name="Rollo DTF")

        assert resolver.find_inventory("dtf-57").id == item.id

    def test_matches_normalized_name(self, resolver, make_inventory):
        item = make_inventory(code="INV-9", name="vinilotextil")

        assert resolver.find_inventory("Vinilo Textil").id == item.id

    def test_no_match(self, resolver, make_inventory):
        make_inventory(code="dtf-57")

        assert resolver.find_inventory("sticker-70") is None
        assert resolver.find_inventory(None) is None
        assert resolver.find_inventory("") is None


class TestResolve:
    def test_inventory_and_preset(self, resolver, make_inventory):
        item = make_inventory(code="dtf-57", name="DTF rollo 57")

        resolution = resolver.resolve("dtf-57")

        assert resolution.is_valid
        assert resolution.inventory.id == item.id
        assert resolution.preset.label == "DTF 57 cm"
        assert resolution.nominal_width_cm == 57
        assert resolution.key == "dtf57"
        assert resolution.label == "DTF rollo 57"

    def test_preset_only(self, resolver):
        resolution = resolver.resolve("Sticker 70cm")

        assert resolution.is_valid
        assert resolution.inventory is None
        assert resolution.label == "Sticker 70 cm"
        assert resolution.nominal_width_cm == 70

    def test_unknown_material(self, resolver):
        resolution = resolver.resolve("lona")

        assert not resolution.is_valid
        assert resolution.label is None
        assert resolution.nominal_width_cm is None

    def test_require_raises_for_unknown(self, resolver):
        with pytest.raises(InvalidMaterialError) as exc_info:
            resolver.require("lona")
        assert exc_info.value.material_id == "lona"
        assert exc_info.value.code == "INVALID_MATERIAL"

    def test_require_returns_known(self, resolver):
        assert resolver.require("comprinter-pu").preset.price_per_meter == 8500
