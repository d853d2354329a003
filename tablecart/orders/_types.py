"""
Order types — context snapshots, draft and wire shape.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from tablecart._types import CENT, Money, to_money

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Enums — values accepted by the order service
# ═══════════════════════════════════════════════════════════════════════════════


class OrderType(Enum):
    DINE_IN = "dine-in"
    TAKEAWAY = "takeaway"
    DELIVERY = "delivery"


_ORDER_TYPE_ALIASES: dict[str, OrderType] = {
    "dineIn": OrderType.DINE_IN,
    "dine-in": OrderType.DINE_IN,
    "takeaway": OrderType.TAKEAWAY,
    "delivery": OrderType.DELIVERY,
}


def order_type_from(value: OrderType | str | None) -> OrderType:
    """
    Map a UI spelling to the wire enum.

    Missing or unknown values fall back to TAKEAWAY.
    """
    if isinstance(value, OrderType):
        return value
    if not value:
        logger.warning("No order type provided, defaulting to takeaway")
        return OrderType.TAKEAWAY
    mapped = _ORDER_TYPE_ALIASES.get(value)
    if mapped is None:
        logger.warning("Unknown order type %r, defaulting to takeaway", value)
        return OrderType.TAKEAWAY
    return mapped


class PaymentMethod(Enum):
    CASH = "cash"
    CARD = "card"
    ONLINE = "online"
    UPI = "upi"
    NETBANKING = "netbanking"
    WALLET = "wallet"
    EMI = "emi"
    PAYLATER = "paylater"
    OTHER = "other"


# ═══════════════════════════════════════════════════════════════════════════════
# Context Snapshots — read-only, supplied by collaborators
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class VenueContext:
    restaurant_id: str
    branch_id: str
    table_id: str | None = None


@dataclass(frozen=True, slots=True)
class CustomerInfo:
    name: str = "Guest"
    email: str = ""
    phone: str = ""

    def to_wire(self) -> dict[str, str]:
        return {
            "name": self.name.strip() or "Guest",
            "email": self.email.strip(),
            "phone": self.phone.strip(),
        }


_COUNTRY_ALIASES: dict[str, str] = {
    "UNITEDKINGDOM": "GB",
    "UK": "GB",
    "U.K.": "GB",
    "GREATBRITAIN": "GB",
    "ENGLAND": "GB",
    "BRITAIN": "GB",
    "GBR": "GB",
    "UNITEDSTATES": "US",
    "UNITEDSTATESOFAMERICA": "US",
    "USA": "US",
    "U.S.A.": "US",
    "U.S.": "US",
    "AMERICA": "US",
    "CANADA": "CA",
    "CAN": "CA",
}


def normalize_country_code(code: str | None) -> str:
    """ISO-2 code for common country spellings; DEFAULT when empty."""
    if code is None or not code.strip():
        return "DEFAULT"
    code = code.strip()
    alias = _COUNTRY_ALIASES.get(code.upper().replace(" ", ""))
    if alias is not None:
        return alias
    return code.upper() if len(code) == 2 else code


DEFAULT_TAX_RATE = Decimal("0.1")


@dataclass(frozen=True, slots=True)
class TaxContext:
    """
    Tax snapshot at submission time.

    Note: tax_rate is a fraction (0.1 == 10 %).
    """

    tax_rate: Money = DEFAULT_TAX_RATE
    tax_name: str = "Tax"
    country_code: str = "DEFAULT"
    is_compound: bool = False
    active: bool = True

    @property
    def percentage(self) -> Money:
        return self.tax_rate * 100

    @classmethod
    def from_settings(cls, doc: Mapping[str, Any]) -> TaxContext:
        """
        Build from a tax settings document (`percentage`, `name`,
        `country`, `isCompound`, `active`).

        An unreadable or negative percentage falls back to 10 %.
        """
        pct = to_money(doc.get("percentage"))
        if pct is None or pct < 0:
            logger.warning("Invalid tax percentage %r, using default 10%%", doc.get("percentage"))
            rate = DEFAULT_TAX_RATE
        else:
            rate = pct / 100
        return cls(
            tax_rate=rate,
            tax_name=str(doc.get("name") or "Tax"),
            country_code=normalize_country_code(doc.get("country")),
            is_compound=bool(doc.get("isCompound", False)),
            active=bool(doc.get("active", True)),
        )

    def tax_on(self, subtotal: Money) -> Money:
        """Tax for a subtotal, rounded half-up to cents."""
        if not self.active or subtotal <= 0:
            return Decimal("0.00")
        rate = self.tax_rate
        if rate < 0:
            logger.warning("Invalid tax rate %s, using default 10%%", rate)
            rate = DEFAULT_TAX_RATE
        return (subtotal * rate).quantize(CENT, rounding=ROUND_HALF_UP)

    def to_wire(self) -> dict[str, Any]:
        return {
            "taxName": self.tax_name,
            "percentage": float(self.percentage),
            "countryCode": self.country_code,
            "isCompound": self.is_compound,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# Draft — Built per attempt, never stored
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class WireLine:
    menu_item_id: str
    name: str
    quantity: int
    price: Money
    notes: str
    subtotal: Money

    def to_wire(self) -> dict[str, Any]:
        return {
            "menuItemId": self.menu_item_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": float(self.price),
            "notes": self.notes,
            "subtotal": float(self.subtotal),
        }


@dataclass(frozen=True, slots=True)
class OrderDraft:
    restaurant_id: str
    branch_id: str
    table_id: str | None
    lines: tuple[WireLine, ...]
    customer: CustomerInfo
    order_type: OrderType
    payment_method: PaymentMethod
    tax: TaxContext
    tax_amount: Money
    subtotal: Money
    total: Money
    notes: str = ""
    payment_status: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """Request body in the order service's camelCase shape."""
        body: dict[str, Any] = {
            "restaurantId": self.restaurant_id,
            "branchId": self.branch_id,
            "tableId": self.table_id,
            "items": [line.to_wire() for line in self.lines],
            "customerInfo": self.customer.to_wire(),
            "orderType": self.order_type.value,
            "paymentMethod": self.payment_method.value,
            "status": "pending",
            "notes": self.notes,
            "taxAmount": float(self.tax_amount),
            "taxDetails": self.tax.to_wire(),
            "subtotal": float(self.subtotal),
            "total": float(self.total),
        }
        if self.payment_status is not None:
            body["paymentStatus"] = self.payment_status
        return body


# ═══════════════════════════════════════════════════════════════════════════════
# Result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PlacedOrder:
    """Order as confirmed by the service."""

    order_id: str | None
    total: Money
    body: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, body: Mapping[str, Any], draft: OrderDraft) -> PlacedOrder:
        order_id = body.get("_id") or body.get("id") or body.get("orderId")
        total = to_money(body.get("total"))
        return cls(
            order_id=str(order_id) if order_id is not None else None,
            total=total if total is not None else draft.total,
            body=body,
        )


__all__ = (
    "OrderType",
    "order_type_from",
    "PaymentMethod",
    "VenueContext",
    "CustomerInfo",
    "normalize_country_code",
    "DEFAULT_TAX_RATE",
    "TaxContext",
    "WireLine",
    "OrderDraft",
    "PlacedOrder",
)
