"""
Pricing types — catalog items and option selections.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from tablecart._types import RawPrice


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog — Read-only snapshot of a menu item
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SizeVariant:
    """Alternate absolute price, chosen via a `size` option."""

    label: str
    price: RawPrice


@dataclass(frozen=True, slots=True)
class PricedOption:
    """
    An extra or addon.

    Note: price_delta wins; price is the legacy field used when delta is absent.
    """

    name: str
    price_delta: RawPrice = None
    price: RawPrice = None


@dataclass(frozen=True, slots=True)
class GroupOption:
    name: str
    price_delta: RawPrice = None


@dataclass(frozen=True, slots=True)
class VariantGroup:
    """Named set of options, e.g. "Spice Level"."""

    name: str
    options: tuple[GroupOption, ...] = ()

    @property
    def is_size(self) -> bool:
        return self.name.strip().lower() == "size"


@dataclass(frozen=True, slots=True)
class CatalogItem:
    """
    Menu item as the storefront sees it.

    Prices are kept raw: a malformed catalog price must degrade pricing,
    not break parsing.
    """

    id: str
    name: str
    base_price: RawPrice
    sizes: tuple[SizeVariant, ...] = ()
    extras: tuple[PricedOption, ...] = ()
    addons: tuple[PricedOption, ...] = ()
    variant_groups: tuple[VariantGroup, ...] = ()

    @classmethod
    def from_mapping(cls, doc: Mapping[str, Any]) -> CatalogItem:
        """
        Parse a catalog document.

        Accepts `_id`/`id`, `name`/`title`, `price`,
        `sizeVariants`/`sizes`, `extras`, `addons`, `variantGroups`.
        """
        return cls(
            id=str(doc.get("_id") or doc.get("id") or ""),
            name=str(doc.get("name") or doc.get("title") or ""),
            base_price=doc.get("price"),
            sizes=tuple(
                SizeVariant(
                    label=str(s.get("label") or s.get("name") or ""),
                    price=s.get("price"),
                )
                for s in _records(doc.get("sizeVariants") or doc.get("sizes"))
            ),
            extras=tuple(_priced(doc.get("extras"))),
            addons=tuple(_priced(doc.get("addons"))),
            variant_groups=tuple(
                VariantGroup(
                    name=str(g.get("name") or "").strip(),
                    options=tuple(
                        GroupOption(
                            name=str(o.get("name") or ""),
                            price_delta=o.get("priceDelta"),
                        )
                        for o in _records(g.get("options"))
                    ),
                )
                for g in _records(doc.get("variantGroups"))
            ),
        )


def _records(raw: Any) -> list[Mapping[str, Any]]:
    if not isinstance(raw, Sequence) or isinstance(raw, str):
        return []
    return [r for r in raw if isinstance(r, Mapping)]


def _priced(raw: Any) -> list[PricedOption]:
    return [
        PricedOption(
            name=str(r.get("name") or ""),
            price_delta=r.get("priceDelta"),
            price=r.get("price"),
        )
        for r in _records(raw)
    ]


# ═══════════════════════════════════════════════════════════════════════════════
# Selection — One user choice
# ═══════════════════════════════════════════════════════════════════════════════


class OptionCategory(Enum):
    SIZE = "size"
    EXTRAS = "extras"
    ADDONS = "addons"
    OPTION = "option"


@dataclass(frozen=True, slots=True)
class SelectedOption:
    """
    One user choice against a configurable axis.

    name:  the axis or group label ("Size", "Extras", "Spice Level")
    value: the chosen entry ("L", "Cheese", "Hot")
    """

    category: OptionCategory
    name: str
    value: str

    @property
    def pair(self) -> tuple[str, str]:
        """Identity pair used for line matching."""
        return (self.name, self.value)

    def to_mapping(self) -> dict[str, str]:
        return {"category": self.category.value, "name": self.name, "value": self.value}

    @classmethod
    def from_mapping(cls, doc: Mapping[str, Any]) -> SelectedOption:
        return cls(
            category=OptionCategory(str(doc.get("category") or "option")),
            name=str(doc.get("name") or ""),
            value=str(doc.get("value") or ""),
        )


def size(value: str, name: str = "Size") -> SelectedOption:
    return SelectedOption(OptionCategory.SIZE, name, value)


def extra(value: str, name: str = "Extras") -> SelectedOption:
    return SelectedOption(OptionCategory.EXTRAS, name, value)


def addon(value: str, name: str = "Addons") -> SelectedOption:
    return SelectedOption(OptionCategory.ADDONS, name, value)


def choice(group: str, value: str) -> SelectedOption:
    return SelectedOption(OptionCategory.OPTION, group, value)


# ═══════════════════════════════════════════════════════════════════════════════
# Axis — Closed tagged variant over option categories
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Size:
    pass


@dataclass(frozen=True, slots=True)
class Extras:
    pass


@dataclass(frozen=True, slots=True)
class Addons:
    pass


@dataclass(frozen=True, slots=True)
class NamedGroup:
    name: str


type Axis = Size | Extras | Addons | NamedGroup


def axis_of(option: SelectedOption) -> Axis:
    match option.category:
        case OptionCategory.SIZE:
            return Size()
        case OptionCategory.EXTRAS:
            return Extras()
        case OptionCategory.ADDONS:
            return Addons()
        case OptionCategory.OPTION:
            return NamedGroup(option.name.strip())


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Catalog
    "SizeVariant",
    "PricedOption",
    "GroupOption",
    "VariantGroup",
    "CatalogItem",
    # Selection
    "OptionCategory",
    "SelectedOption",
    "size",
    "extra",
    "addon",
    "choice",
    # Axis
    "Size",
    "Extras",
    "Addons",
    "NamedGroup",
    "Axis",
    "axis_of",
)
