from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from tablecart import CartContext, ManualClock
from tablecart import orders as O
from tablecart import pricing as P
from tablecart import storage as S

PIZZA_ID = "64a0f0c2b4e1d3a5c7e9f001"
BURGER_ID = "64a0f0c2b4e1d3a5c7e9f002"
SODA_ID = "64a0f0c2b4e1d3a5c7e9f003"


class FakeOrderService:
    """
    Scripted order service.

    Queued outcomes are returned (or raised, for exceptions) in order;
    with nothing queued every call succeeds. Set `gate` to hold calls
    until the event fires, or `gates[n]` to hold only the n-th call.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[O.OrderDraft, str | None]] = []
        self.outcomes: list[Any] = []
        self.gate: asyncio.Event | None = None
        self.gates: dict[int, asyncio.Event] = {}

    def respond(self, *outcomes: Any) -> None:
        self.outcomes.extend(outcomes)

    async def create_order(
        self, draft: O.OrderDraft, *, idempotency_key: str | None = None
    ) -> Mapping[str, Any] | None:
        self.calls.append((draft, idempotency_key))
        gate = self.gates.get(len(self.calls), self.gate)
        if gate is not None:
            await gate.wait()
        if self.outcomes:
            outcome = self.outcomes.pop(0)
        else:
            outcome = {"_id": f"order-{len(self.calls)}", "total": str(draft.total)}
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.placed: list[O.PlacedOrder] = []
        self.fail = fail

    async def order_placed(self, order: O.PlacedOrder) -> None:
        if self.fail:
            raise RuntimeError("notification channel down")
        self.placed.append(order)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def durable() -> S.MemoryStorage:
    return S.MemoryStorage()


@pytest.fixture
def session() -> S.MemoryStorage:
    return S.MemoryStorage()


@pytest.fixture
def service() -> FakeOrderService:
    return FakeOrderService()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def pizza() -> P.CatalogItem:
    """Base $10, sizes S=$8 / L=$12, Cheese +$1."""
    return P.CatalogItem.from_mapping(
        {
            "_id": PIZZA_ID,
            "name": "Margherita",
            "price": 10,
            "sizeVariants": [
                {"label": "S", "price": 8},
                {"label": "L", "price": 12},
            ],
            "extras": [{"name": "Cheese", "priceDelta": 1}],
            "addons": [{"name": "Garlic Dip", "price": "0.50"}],
            "variantGroups": [
                {
                    "name": "Spice Level",
                    "options": [
                        {"name": "Mild", "priceDelta": 0},
                        {"name": "Hot", "priceDelta": "0.75"},
                    ],
                },
                {"name": "Size", "options": [{"name": "L", "priceDelta": 4}]},
            ],
        }
    )


@pytest.fixture
def burger() -> P.CatalogItem:
    return P.CatalogItem.from_mapping({"_id": BURGER_ID, "name": "Burger", "price": "12.50"})


@pytest.fixture
def soda() -> P.CatalogItem:
    return P.CatalogItem.from_mapping({"_id": SODA_ID, "name": "Soda", "price": "4.25"})


@pytest.fixture
def venue() -> O.VenueContext:
    return O.VenueContext(restaurant_id="r1", branch_id="b1", table_id="t4")


@pytest.fixture
def ctx(
    durable: S.MemoryStorage,
    session: S.MemoryStorage,
    service: FakeOrderService,
    notifier: RecordingNotifier,
    venue: O.VenueContext,
    clock: ManualClock,
) -> CartContext:
    return CartContext.create(
        durable,
        service,
        venue=venue,
        tax=O.TaxContext(tax_rate=O.DEFAULT_TAX_RATE, tax_name="GST"),
        session=session,
        notifier=notifier,
        clock=clock,
    )
