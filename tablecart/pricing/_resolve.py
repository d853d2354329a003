"""
Price resolver — pure unit-price computation.

    unit = start + Σ deltas

    start:  size variant price (chosen, else lowest) or base price
    deltas: one resolver per axis (Extras, Addons, NamedGroup)

Total over its inputs: unknown selections add zero, malformed catalog
prices fall back to the base price for that part of the sum.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from tablecart._types import Money, to_money
from tablecart.pricing._types import (
    CatalogItem,
    PricedOption,
    SelectedOption,
    Size,
    Extras,
    Addons,
    NamedGroup,
    axis_of,
)

ZERO = Decimal("0")


# ═══════════════════════════════════════════════════════════════════════════════
# Start Price — Size axis
# ═══════════════════════════════════════════════════════════════════════════════


def _base(item: CatalogItem) -> Money:
    base = to_money(item.base_price)
    return base if base is not None else ZERO


def _lowest_variant(item: CatalogItem) -> Money | None:
    prices = [p for p in (to_money(v.price) for v in item.sizes) if p is not None]
    return min(prices) if prices else None


def resolve_start(item: CatalogItem, chosen: SelectedOption | None) -> Money:
    """
    Price before deltas.

    No size chosen + variants declared → lowest-priced variant.
    Chosen size not declared → base price (stale selection, no adjustment).
    """
    if not item.sizes:
        return _base(item)

    if chosen is None:
        lowest = _lowest_variant(item)
        return lowest if lowest is not None else _base(item)

    for variant in item.sizes:
        if variant.label == chosen.value:
            price = to_money(variant.price)
            return price if price is not None else _base(item)

    return _base(item)


# ═══════════════════════════════════════════════════════════════════════════════
# Deltas — one resolver per axis
# ═══════════════════════════════════════════════════════════════════════════════


def _priced_delta(entries: Iterable[PricedOption], value: str) -> Money:
    for entry in entries:
        if entry.name != value:
            continue
        raw = entry.price_delta if entry.price_delta is not None else entry.price
        delta = to_money(raw)
        return delta if delta is not None else ZERO
    return ZERO


def extras_delta(item: CatalogItem, option: SelectedOption) -> Money:
    return _priced_delta(item.extras, option.value)


def addons_delta(item: CatalogItem, option: SelectedOption) -> Money:
    return _priced_delta(item.addons, option.value)


def group_delta(item: CatalogItem, group_name: str, option: SelectedOption) -> Money:
    """Delta of the chosen sub-option in a non-size variant group."""
    for group in item.variant_groups:
        if group.is_size or group.name != group_name:
            continue
        for sub in group.options:
            if sub.name == option.value:
                delta = to_money(sub.price_delta)
                return delta if delta is not None else ZERO
        return ZERO
    return ZERO


def option_delta(item: CatalogItem, option: SelectedOption) -> Money:
    match axis_of(option):
        case Size():
            return ZERO
        case Extras():
            return extras_delta(item, option)
        case Addons():
            return addons_delta(item, option)
        case NamedGroup(name=name):
            return group_delta(item, name, option)


# ═══════════════════════════════════════════════════════════════════════════════
# resolve_price() — Composition
# ═══════════════════════════════════════════════════════════════════════════════


def resolve_price(item: CatalogItem, options: Iterable[SelectedOption] = ()) -> Money:
    """
    Effective unit price for an item with the given selections.

    Example:
        item: base 10, sizes S=8 / L=12, extras Cheese +1
        resolve_price(item, [extra("Cheese")])  # 9  (lowest variant + 1)
        resolve_price(item, [size("L")])        # 12
    """
    selected = tuple(options)
    chosen_size = next(
        (o for o in selected if isinstance(axis_of(o), Size)),
        None,
    )
    start = resolve_start(item, chosen_size)
    return start + sum((option_delta(item, o) for o in selected), ZERO)


__all__ = (
    "resolve_price",
    "resolve_start",
    "option_delta",
    "extras_delta",
    "addons_delta",
    "group_delta",
)
