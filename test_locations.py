"""
test_locations.py - Canonical location registry checks.

Usage: pytest test_locations.py
"""

from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from locations import DEFAULT_REGISTRY, HADYAI, KNOWN_LOCATIONS, build_registry
from models import LabelColumn


def test_registry_has_eleven_unique_keys():
    keys = DEFAULT_REGISTRY.keys()
    assert len(keys) == 11
    assert len(set(keys)) == 11
    assert HADYAI in DEFAULT_REGISTRY


def test_no_variant_is_substring_of_another_locations_variant():
    for location in DEFAULT_REGISTRY:
        for other in DEFAULT_REGISTRY:
            if other.key == location.key:
                continue
            for variant in location.variants:
                for other_variant in other.variants:
                    assert variant not in other_variant, (location.key, variant, other.key, other_variant)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("หาดใหญ่", "cdc_hadyai"),
        ("DC หาดใหญ่ (FC33)", "cdc_hadyai"),
        ("HDY", "cdc_hadyai"),
        ("คลังบางบัวทอง", "cdc_bangbuathong"),
        ("BBT", "cdc_bangbuathong"),
        ("โคราช", "cdc_nakhonratchasima"),
        ("สุราษฎร์ธานี", "cdc_surat"),
        ("ขอนแก่น (ลาว)", "cdc_khonkaen"),
    ],
)
def test_resolve_variants_to_canonical_key(text, expected):
    assert DEFAULT_REGISTRY.resolve(text).key == expected


@pytest.mark.parametrize("value", [None, "", "   ", "กรุงเทพ", 1234, "hdy"])
def test_resolve_unmatched_returns_none(value):
    assert DEFAULT_REGISTRY.resolve(value) is None


def test_depot_locations_use_secondary_label_column():
    secondary = {location.key for location in DEFAULT_REGISTRY if location.label_column == LabelColumn.SECONDARY}
    assert secondary == {"cdc_bangbuathong", "cdc_mahachai", "cdc_suvarnabhumi"}


def test_lookup_helpers():
    assert DEFAULT_REGISTRY.get("cdc_phuket").name == "ภูเก็ต"
    assert DEFAULT_REGISTRY.by_name("คลังมหาชัย").key == "cdc_mahachai"
    assert DEFAULT_REGISTRY.get("cdc_unknown") is None

    totals = DEFAULT_REGISTRY.empty_totals()
    assert list(totals) == [key for key, _, _ in KNOWN_LOCATIONS]
    assert set(totals.values()) == {0}


def test_build_registry_adds_canonical_name_and_rejects_duplicates():
    registry = build_registry([("cdc_a", "คลังเอ", ("AAA",))])
    location = registry.get("cdc_a")
    assert location.variants[0] == "คลังเอ"
    assert location.label_column == LabelColumn.SECONDARY

    with pytest.raises(ValueError):
        build_registry([("cdc_a", "เอ", ("AAA",)), ("cdc_a", "บี", ("BBB",))])
