"""
Checkout Example — add → submit → duplicate → success.

Run: uv run python examples/checkout_example.py
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from kungfu import Ok, Error

from tablecart import CartContext, ManualClock
from tablecart import orders as O
from tablecart import pricing as P
from tablecart import storage as S


# ═══════════════════════════════════════════════════════════════════════════════
# Domain
# ═══════════════════════════════════════════════════════════════════════════════

MENU = {
    "pizza": P.CatalogItem.from_mapping(
        {
            "_id": "64a0f0c2b4e1d3a5c7e9f001",
            "name": "Margherita",
            "price": 10,
            "sizeVariants": [{"label": "S", "price": 8}, {"label": "L", "price": 12}],
            "extras": [{"name": "Cheese", "priceDelta": 1}],
            "variantGroups": [
                {"name": "Spice Level", "options": [{"name": "Hot", "priceDelta": 0.75}]}
            ],
        }
    ),
    "soda": P.CatalogItem.from_mapping(
        {"_id": "64a0f0c2b4e1d3a5c7e9f003", "name": "Soda", "price": "2.50"}
    ),
}


class FlakyOrderService:
    """Fails the first call, accepts the rest."""

    def __init__(self) -> None:
        self.calls = 0

    async def create_order(
        self, draft: O.OrderDraft, *, idempotency_key: str | None = None
    ) -> Mapping[str, Any] | None:
        self.calls += 1
        print(f"  [API] POST /public/orders #{self.calls} key={(idempotency_key or '')[:12]}…")
        await asyncio.sleep(0.01)
        if self.calls == 1:
            raise O.TransportFailure("connection reset")
        return {"_id": f"ord-{self.calls}", "total": str(draft.total)}


class PrintNotifier:
    async def order_placed(self, order: O.PlacedOrder) -> None:
        print(f"  [notify] order {order.order_id} placed")


def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def show(result) -> None:
    match result:
        case Ok(order):
            print(f"   placed {order.order_id}, total ${order.total}")
        case Error(e):
            print(f"   {e.kind.name}: {e.message}")


# ═══════════════════════════════════════════════════════════════════════════════
# Demo
# ═══════════════════════════════════════════════════════════════════════════════


async def main() -> None:
    banner("Checkout")
    clock = ManualClock()
    service = FlakyOrderService()

    ctx = CartContext.create(
        S.MemoryStorage(),
        service,
        venue=O.VenueContext("r1", "b1", table_id="t4"),
        tax=O.TaxContext.from_settings({"percentage": 8, "name": "GST", "country": "Canada"}),
        notifier=PrintNotifier(),
        clock=clock,
    )
    await ctx.start()

    # 1. Build a cart
    print("\n1. Add items:")
    await ctx.add(MENU["pizza"], 2, [P.extra("Cheese")])
    clock.advance(milliseconds=500)
    await ctx.add(MENU["pizza"], 1, [P.size("L"), P.choice("Spice Level", "Hot")])
    await ctx.add(MENU["soda"], 3)
    await ctx.add(MENU["soda"], 1)  # double tap, dropped by debounce
    for line in ctx.lines:
        print(f"   {line.quantity} × {line.name} @ ${line.unit_price}")
    print(f"   total ${ctx.total}")

    # 2. First submit — transport failure, cart kept
    print("\n2. Submit:")
    show(await ctx.submit(O.CustomerInfo(name="Ada", phone="555-123-4567")))
    print(f"   lines kept: {len(ctx.lines)}")

    # 3. Retry immediately — guard refuses
    print("\n3. Retry at once:")
    show(await ctx.submit(O.CustomerInfo(name="Ada", phone="555-123-4567")))

    # 4. Same cart within 10s — duplicate content
    clock.advance(seconds=4)
    print("\n4. Retry after 4s:")
    show(await ctx.submit(O.CustomerInfo(name="Ada", phone="555-123-4567")))

    # 5. After the window — accepted, cart cleared
    clock.advance(seconds=7)
    print("\n5. Retry after 11s:")
    show(await ctx.submit(O.CustomerInfo(name="Ada", phone="555-123-4567")))
    await ctx.drain()
    print(f"   lines left: {len(ctx.lines)}, API calls: {service.calls}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    asyncio.run(main())
