"""
locations.py - Canonical location registry.

Maps the many ways a distribution center is written on a report
("คลังบางบัวทอง", "บางบัวทอง", "BBT") onto one CanonicalLocation.

Matching is substring containment, checked location by location in
registry order, longest variant first. Unmatched text resolves to None.
The registry is built once and shared read-only; pass it explicitly to
the scanner and aggregator.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Optional

from grid import cell_text
from logging_config import get_logger
from models import CanonicalLocation, LabelColumn

logger = get_logger(__name__)

# Depot-style locations carry this prefix in their canonical name.
DEPOT_PREFIX = "คลัง"

HADYAI = "cdc_hadyai"
SUVARNABHUMI = "cdc_suvarnabhumi"
KHONKAEN = "cdc_khonkaen"

# Priority order. Keep longer / more specific spellings ahead of names that
# could appear inside them.
KNOWN_LOCATIONS: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("cdc_bangbuathong", "คลังบางบัวทอง", ("คลังบางบัวทอง", "บางบัวทอง", "BBT")),
    ("cdc_nakhonratchasima", "นครราชสีมา", ("นครราชสีมา", "โคราช", "NMA")),
    ("cdc_nakhonsawan", "นครสวรรค์", ("นครสวรรค์", "NSW")),
    ("cdc_chonburi", "ชลบุรี", ("ชลบุรี", "CBR")),
    ("cdc_mahachai", "คลังมหาชัย", ("คลังมหาชัย", "มหาชัย", "MHC")),
    ("cdc_suvarnabhumi", "คลังสุวรรณภูมิ", ("คลังสุวรรณภูมิ", "สุวรรณภูมิ", "SVB")),
    ("cdc_hadyai", "หาดใหญ่", ("หาดใหญ่", "HDY")),
    ("cdc_phuket", "ภูเก็ต", ("ภูเก็ต", "PKT")),
    ("cdc_chiangmai", "เชียงใหม่", ("เชียงใหม่", "CNX")),
    ("cdc_surat", "สุราษฎร์", ("สุราษฎร์ธานี", "สุราษฎร์", "SRT")),
    ("cdc_khonkaen", "ขอนแก่น", ("ขอนแก่น", "KKN")),
)


def _label_column_for(name: str) -> LabelColumn:
    return LabelColumn.SECONDARY if name.startswith(DEPOT_PREFIX) else LabelColumn.PRIMARY


class LocationRegistry:
    """Immutable lookup from report text to canonical locations."""

    def __init__(self, locations: Iterable[CanonicalLocation]) -> None:
        ordered = tuple(locations)
        keys = [location.key for location in ordered]
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate location keys in registry: {keys}")

        self._locations = ordered
        self._by_key = {location.key: location for location in ordered}
        self._by_name = {location.name: location for location in ordered}
        # Longest variant first inside each location.
        self._matchers: tuple[tuple[CanonicalLocation, tuple[str, ...]], ...] = tuple(
            (location, tuple(sorted(location.variants, key=len, reverse=True)))
            for location in ordered
        )

    def __iter__(self) -> Iterator[CanonicalLocation]:
        return iter(self._locations)

    def __len__(self) -> int:
        return len(self._locations)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def keys(self) -> list[str]:
        return [location.key for location in self._locations]

    def get(self, key: str) -> Optional[CanonicalLocation]:
        return self._by_key.get(key)

    def by_name(self, name: str) -> Optional[CanonicalLocation]:
        """Look up by canonical display name (exact)."""
        return self._by_name.get(name)

    def empty_totals(self) -> dict[str, int]:
        """Fresh key -> 0 mapping covering every location."""
        return {location.key: 0 for location in self._locations}

    def resolve(self, value: Any) -> Optional[CanonicalLocation]:
        """Resolve a cell to its canonical location, or None."""
        text = cell_text(value)
        if not text:
            return None

        for location, variants in self._matchers:
            for variant in variants:
                if variant in text:
                    return location
        return None


def build_registry(
    definitions: Iterable[tuple[str, str, tuple[str, ...]]] = KNOWN_LOCATIONS,
) -> LocationRegistry:
    """Build a registry from `(key, canonical name, variants)` tuples."""
    locations = []
    for key, name, variants in definitions:
        if name not in variants:
            variants = (name, *variants)
        locations.append(
            CanonicalLocation(
                key=key,
                name=name,
                variants=variants,
                label_column=_label_column_for(name),
            )
        )
    registry = LocationRegistry(locations)
    logger.debug(
        "location_registry_built | locations=%s | secondary=%s",
        len(registry),
        [loc.key for loc in registry if loc.label_column == LabelColumn.SECONDARY],
    )
    return registry


DEFAULT_REGISTRY = build_registry()
