"""
Unit tests for unit canonicalization.

These tests verify that:
1. Common spellings map to canonical symbols through the alias table
2. Units missing from the table are resolved through Pint
3. Unknown units are kept verbatim
"""

import pytest

from ghgkit.unit_normalizer import UnitNormalizer


@pytest.fixture
def normalizer():
    return UnitNormalizer()


class TestAliases:

    @pytest.mark.parametrize("raw,expected", [
        ("kwh", "kWh"),
        ("KWH", "kWh"),
        ("kWh", "kWh"),
        ("Litres", "L"),
        ("liters", "L"),
        ("cubic metres", "m3"),
        ("Tonnes", "t"),
        ("  kg  ", "kg"),
    ])
    def test_alias_table(self, normalizer, raw, expected):
        assert normalizer.canonicalize(raw) == expected


class TestPint:

    def test_pint_symbol(self, normalizer):
        assert normalizer.canonicalize("gram") == "g"

    def test_pint_result_rechecked_against_aliases(self, normalizer):
        assert normalizer.canonicalize("kilowatt_hour") == "kWh"

    def test_unknown_unit_kept_raw(self, normalizer):
        assert normalizer.canonicalize("bags of cement") == "bags of cement"

    def test_empty(self, normalizer):
        assert normalizer.canonicalize("") == ""
        assert normalizer.canonicalize(None) == ""


class TestIsKnown:

    def test_known(self, normalizer):
        assert normalizer.is_known("kWh")
        assert normalizer.is_known("gram")

    def test_unknown(self, normalizer):
        assert not normalizer.is_known("bags of cement")
        assert not normalizer.is_known("")


def test_custom_aliases():
    normalizer = UnitNormalizer({"pallet": "pallets"})
    assert normalizer.canonicalize("Pallet") == "pallets"
