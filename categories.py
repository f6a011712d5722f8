"""
categories.py - Per-category extraction profiles.

Everything that differs between product categories is data here: which
report column holds the category's quantities, which locations must show
stock for a table to count as real data, and which auxiliary fields the
category carries. The aggregator and validator read these profiles; they
contain no category-specific branches of their own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from locations import HADYAI, KHONKAEN, SUVARNABHUMI
from models import Category


@dataclass(frozen=True)
class AuxFieldRule:
    """An auxiliary quantity read from one location's row.

    The row must resolve to `location_key` and its label must contain one of
    `markers`. When several rows qualify, the last one wins.
    """

    name: str
    location_key: str
    markers: tuple[str, ...]


@dataclass(frozen=True)
class CategoryProfile:
    category: Category
    display_name: str
    value_column: int
    # At least one of these locations must be > 0 (first is the primary
    # signal, the rest are alternates).
    signal_locations: tuple[str, ...] = (HADYAI, SUVARNABHUMI)
    aux_fields: tuple[AuxFieldRule, ...] = ()
    # Substrings that identify the category from a workbook sheet name.
    sheet_keywords: tuple[str, ...] = field(default_factory=tuple)


KHON_KAEN_LAOS = AuxFieldRule(
    name="khon_kaen_laos",
    location_key=KHONKAEN,
    markers=("ลาว", "Laos", "LAOS", "laos"),
)
KHON_KAEN_CAMBODIA = AuxFieldRule(
    name="khon_kaen_cambodia",
    location_key=KHONKAEN,
    markers=("กัมพูชา", "เขมร", "Cambodia", "CAMBODIA", "cambodia"),
)

PROFILES: dict[Category, CategoryProfile] = {
    Category.ORANGE: CategoryProfile(
        category=Category.ORANGE,
        display_name="น้ำส้ม",
        value_column=2,
        aux_fields=(KHON_KAEN_LAOS, KHON_KAEN_CAMBODIA),
        sheet_keywords=("orange", "ส้ม"),
    ),
    Category.YUZU: CategoryProfile(
        category=Category.YUZU,
        display_name="ยูซุ",
        value_column=3,
        sheet_keywords=("yuzu", "ยูซุ"),
    ),
    Category.POP: CategoryProfile(
        category=Category.POP,
        display_name="Shinsen Pop",
        value_column=4,
        sheet_keywords=("pop", "shinsen pop"),
    ),
    Category.TOMATO: CategoryProfile(
        category=Category.TOMATO,
        display_name="Tomato Yuzu",
        value_column=5,
        sheet_keywords=("tomato", "มะเขือเท"),
    ),
    Category.MIXED: CategoryProfile(
        category=Category.MIXED,
        display_name="น้ำผลไม้รวม",
        value_column=6,
        sheet_keywords=("mixed", "ผลไม้รวม", "น้ำผลไม้รวม"),
    ),
}

# Sheet-name detection order: "pop" and "tomato" before the plain yuzu
# keyword, since their sheets often mention yuzu too.
DETECTION_ORDER: tuple[Category, ...] = (
    Category.ORANGE,
    Category.POP,
    Category.TOMATO,
    Category.YUZU,
    Category.MIXED,
)


def get_profile(category: Category | str) -> CategoryProfile:
    """Profile for a category (enum or its value). Raises ValueError if unknown."""
    return PROFILES[Category(category)]


def parse_categories(values: tuple[Category | str, ...] | list[Category | str]) -> list[Category]:
    """Validate categories (members or names), keeping order and dropping duplicates."""
    result: list[Category] = []
    for value in values:
        category = value if isinstance(value, Category) else Category(str(value).strip().lower())
        if category not in result:
            result.append(category)
    return result


def detect_category(sheet_name: str) -> Optional[Category]:
    """Infer the category from a workbook sheet name."""
    if not sheet_name:
        return None
    lowered = sheet_name.lower()
    for category in DETECTION_ORDER:
        for keyword in PROFILES[category].sheet_keywords:
            if keyword.lower() in lowered:
                return category
    return None
