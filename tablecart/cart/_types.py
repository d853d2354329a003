"""
Cart types — lines, identity and policy.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import timedelta
from decimal import Decimal
from typing import Any

from tablecart._types import Money, to_money
from tablecart.pricing import SelectedOption


# ═══════════════════════════════════════════════════════════════════════════════
# Line Identity
# ═══════════════════════════════════════════════════════════════════════════════

type LineIdentity = tuple[str, tuple[tuple[str, str], ...]]
"""(item_id, sorted (name, value) pairs) — options compared as an unordered multiset."""


def line_identity(item_id: str, options: Iterable[SelectedOption]) -> LineIdentity:
    return (item_id, tuple(sorted(o.pair for o in options)))


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Line
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLine:
    """
    One distinct purchasable configuration with a quantity.

    Note: unit_price is fixed when the line is created. It is never
    recomputed from a later catalog snapshot.
    """

    item_id: str
    unit_price: Money
    quantity: int
    options: tuple[SelectedOption, ...]
    name: str

    @property
    def identity(self) -> LineIdentity:
        return line_identity(self.item_id, self.options)

    @property
    def subtotal(self) -> Money:
        return self.unit_price * self.quantity

    def with_quantity(self, quantity: int) -> CartLine:
        return replace(self, quantity=quantity)

    def to_mapping(self) -> dict[str, Any]:
        return {
            "itemId": self.item_id,
            "resolvedUnitPrice": str(self.unit_price),
            "quantity": self.quantity,
            "selectedOptions": [o.to_mapping() for o in self.options],
            "displayName": self.name,
        }

    @classmethod
    def from_mapping(cls, doc: Mapping[str, Any]) -> CartLine:
        """
        Parse a persisted line.

        Raises ValueError on data that cannot form a valid line.
        """
        item_id = doc.get("itemId")
        if not item_id:
            raise ValueError("missing itemId")
        price = to_money(doc.get("resolvedUnitPrice"))
        if price is None or price < 0:
            raise ValueError(f"bad resolvedUnitPrice for {item_id}")
        quantity = doc.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValueError(f"bad quantity for {item_id}")
        raw_options = doc.get("selectedOptions") or []
        if not isinstance(raw_options, list):
            raise ValueError(f"bad selectedOptions for {item_id}")
        return cls(
            item_id=str(item_id),
            unit_price=price,
            quantity=quantity,
            options=tuple(SelectedOption.from_mapping(o) for o in raw_options),
            name=str(doc.get("displayName") or ""),
        )


def cart_total(lines: Iterable[CartLine]) -> Money:
    return sum((line.subtotal for line in lines), Decimal("0"))


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Policy
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartPolicy:
    """
    Cart store configuration.

    Example:
        policy = CartPolicy().with_debounce(milliseconds=500).with_storage_key("pos_cart")
    """

    debounce: timedelta = timedelta(milliseconds=300)
    storage_key: str = "cart"

    def with_debounce(
        self,
        *,
        milliseconds: float | None = None,
        delta: timedelta | None = None,
    ) -> CartPolicy:
        """Window in which a repeated add of the same item is dropped."""
        window = delta if delta is not None else timedelta(milliseconds=milliseconds or 0)
        return CartPolicy(debounce=window, storage_key=self.storage_key)

    def with_storage_key(self, key: str) -> CartPolicy:
        return CartPolicy(debounce=self.debounce, storage_key=key)


__all__ = (
    "LineIdentity",
    "line_identity",
    "CartLine",
    "cart_total",
    "CartPolicy",
)
