"""
Payload builder — cart snapshot + context → order draft.

Pure: no I/O. Any malformed line aborts the whole draft with a
VALIDATION error naming the line; nothing is sent.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from kungfu import Result, Ok, Error

from tablecart._errors import CheckoutError, CheckoutErrors
from tablecart.cart import CartLine
from tablecart.orders._types import (
    CustomerInfo,
    OrderDraft,
    OrderType,
    PaymentMethod,
    TaxContext,
    VenueContext,
    WireLine,
)
from tablecart.pricing import SelectedOption

# Remote menu item ids are 24-char hex object ids
OBJECT_ID = re.compile(r"^[0-9a-fA-F]{24}$")

PHONE = re.compile(r"^[+]?[(]?[0-9]{3}[)]?[-\s.]?[0-9]{3}[-\s.]?[0-9]{4,6}$")
EMAIL = re.compile(r"\S+@\S+\.\S+")


# ═══════════════════════════════════════════════════════════════════════════════
# Submission Context — everything besides the lines
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SubmissionContext:
    """Snapshot of non-cart inputs for one attempt."""

    venue: VenueContext
    tax: TaxContext = field(default_factory=TaxContext)
    customer: CustomerInfo = field(default_factory=CustomerInfo)
    order_type: OrderType = OrderType.TAKEAWAY
    payment_method: PaymentMethod = PaymentMethod.CASH
    note: str = ""


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════


def describe_options(options: Iterable[SelectedOption]) -> str:
    """
    Human-readable option list, e.g. "Size: L, Extras: Cheese".

    Named-group options use their group name as label.
    """
    return ", ".join(
        f"{option.name or option.category.value}: {option.value}" for option in options
    )


def describe_line(index: int, line: CartLine) -> str:
    label = line.name or line.item_id or "?"
    return f"line {index + 1} ({label} x{line.quantity})"


def validate_customer(customer: CustomerInfo) -> CheckoutError | None:
    """Phone and email are optional; when present they must look valid."""
    phone = customer.phone.strip()
    if phone and not PHONE.match(phone):
        return CheckoutErrors.validation("customer", f"Invalid phone number: {phone}")
    email = customer.email.strip()
    if email and not EMAIL.fullmatch(email):
        return CheckoutErrors.validation("customer", f"Invalid email address: {email}")
    return None


def _wire_line(
    index: int, line: CartLine, id_pattern: re.Pattern[str] | None
) -> Result[WireLine, CheckoutError]:
    where = describe_line(index, line)
    if not line.item_id:
        return Error(CheckoutErrors.validation(where, f"Missing menu item id on {where}"))
    if id_pattern is not None and not id_pattern.match(line.item_id):
        return Error(
            CheckoutErrors.validation(
                where, f"Invalid menu item id {line.item_id!r} on {where}"
            )
        )
    if line.quantity < 1:
        return Error(CheckoutErrors.validation(where, f"Quantity must be positive on {where}"))
    if line.unit_price < 0 or not line.unit_price.is_finite():
        return Error(CheckoutErrors.validation(where, f"Invalid price on {where}"))

    return Ok(
        WireLine(
            menu_item_id=line.item_id,
            name=line.name or line.item_id,
            quantity=line.quantity,
            price=line.unit_price,
            notes=describe_options(line.options),
            subtotal=line.subtotal,
        )
    )


# ═══════════════════════════════════════════════════════════════════════════════
# build_draft()
# ═══════════════════════════════════════════════════════════════════════════════


def build_draft(
    lines: Iterable[CartLine],
    context: SubmissionContext,
    *,
    id_pattern: re.Pattern[str] | None = OBJECT_ID,
) -> Result[OrderDraft, CheckoutError]:
    """
    Translate cart lines into the order service's request shape.

    Tax comes from context.tax; subtotal and total are summed from the
    lines' resolved prices, so they always agree with the cart.

    Example:
        match build_draft(cart.lines, SubmissionContext(venue=venue)):
            case Ok(draft):
                body = draft.to_wire()
            case Error(err):
                print(err.line, err.message)
    """
    wire: list[WireLine] = []
    for index, line in enumerate(lines):
        match _wire_line(index, line, id_pattern):
            case Ok(item):
                wire.append(item)
            case Error(err):
                return Error(err)

    if not wire:
        return Error(CheckoutErrors.empty_cart())

    if (err := validate_customer(context.customer)) is not None:
        return Error(err)

    subtotal = sum((w.subtotal for w in wire), Decimal("0"))
    tax_amount = context.tax.tax_on(subtotal)
    venue = context.venue

    return Ok(
        OrderDraft(
            restaurant_id=venue.restaurant_id,
            branch_id=venue.branch_id,
            table_id=venue.table_id,
            lines=tuple(wire),
            customer=context.customer,
            order_type=context.order_type,
            payment_method=context.payment_method,
            tax=context.tax,
            tax_amount=tax_amount,
            subtotal=subtotal,
            total=subtotal + tax_amount,
            notes=context.note.strip(),
        )
    )


__all__ = (
    "OBJECT_ID",
    "PHONE",
    "EMAIL",
    "SubmissionContext",
    "describe_options",
    "describe_line",
    "validate_customer",
    "build_draft",
)
