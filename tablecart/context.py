"""
Cart context — the facade the UI layer talks to.

Wires cart store, submission guard and order submitter together:

    add/remove/update ──► CartStore ──► durable storage
    submit ──► SubmissionGuard.admit ──► OrderSubmitter.submit
                    │                          │
                 rejection                ok: record_success, clear cart, notify (background)
                                          error: record_failure (cart kept)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from combinators import lift as L
from kungfu import Result, Ok, Error

from tablecart._errors import CheckoutError
from tablecart._types import Clock, Money
from tablecart.cart import CartLine, CartPolicy, CartStore
from tablecart.guard import FingerprintInput, GuardPolicy, SubmissionGuard
from tablecart.orders import (
    CustomerInfo,
    Notifier,
    OrderService,
    OrderSubmitter,
    OrderType,
    PaymentMethod,
    PlacedOrder,
    SubmissionContext,
    TaxContext,
    VenueContext,
    order_type_from,
)
from tablecart.pricing import CatalogItem, SelectedOption
from tablecart.storage import MemoryStorage, Storage, StorageError

logger = logging.getLogger(__name__)

type VenueSource = VenueContext | Callable[[], VenueContext]
type TaxSource = TaxContext | Callable[[], TaxContext]


def _snapshot[T](source: T | Callable[[], T]) -> T:
    return source() if callable(source) else source


class CartContext:
    """
    Cart + checkout for one storefront session.

    Example:
        ctx = CartContext.create(
            FileStorage("data/cart.json"),
            HttpOrderService("https://api.example.com"),
            venue=VenueContext("r1", "b1", table_id="t4"),
        )
        await ctx.start()
        await ctx.add(item, 2, [size("L")])

        match await ctx.submit(CustomerInfo(phone="555-123-4567"), order_type="dineIn"):
            case Ok(order): ...
            case Error(err): ...
    """

    def __init__(
        self,
        *,
        cart: CartStore,
        guard: SubmissionGuard,
        submitter: OrderSubmitter,
        venue: VenueSource,
        tax: TaxSource = TaxContext(),
        notifier: Notifier | None = None,
    ) -> None:
        self._cart = cart
        self._guard = guard
        self._submitter = submitter
        self._venue = venue
        self._tax = tax
        self._notifier = notifier
        self._note = ""
        self._last_order: PlacedOrder | None = None
        self._notifications: set[asyncio.Task[None]] = set()

    @classmethod
    def create(
        cls,
        durable: Storage,
        service: OrderService,
        *,
        venue: VenueSource,
        tax: TaxSource = TaxContext(),
        session: Storage | None = None,
        notifier: Notifier | None = None,
        cart_policy: CartPolicy | None = None,
        guard_policy: GuardPolicy | None = None,
        clock: Clock | None = None,
    ) -> CartContext:
        """Build the full stack from its collaborators."""
        guard_policy = guard_policy if guard_policy is not None else GuardPolicy()
        return cls(
            cart=CartStore(durable, policy=cart_policy, clock=clock),
            guard=SubmissionGuard(
                session if session is not None else MemoryStorage(),
                policy=guard_policy,
                clock=clock,
            ),
            submitter=OrderSubmitter(service, fallback_wait=guard_policy.min_interval),
            venue=venue,
            tax=tax,
            notifier=notifier,
        )

    # ─── Read side ───────────────────────────────────────────────────────────

    @property
    def cart(self) -> CartStore:
        return self._cart

    @property
    def guard(self) -> SubmissionGuard:
        return self._guard

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return self._cart.lines

    @property
    def total(self) -> Money:
        return self._cart.total

    @property
    def item_count(self) -> int:
        return self._cart.item_count

    @property
    def submitting(self) -> bool:
        return self._guard.in_flight

    @property
    def last_order(self) -> PlacedOrder | None:
        return self._last_order

    @property
    def note(self) -> str:
        return self._note

    def set_note(self, note: str) -> None:
        self._note = note

    # ─── Cart ────────────────────────────────────────────────────────────────

    async def start(self) -> Result[int, StorageError]:
        """Load the persisted cart. Safe to call more than once."""
        return await self._cart.load()

    async def add(
        self,
        item: CatalogItem,
        quantity: int = 1,
        options: Iterable[SelectedOption] = (),
    ) -> CartLine | None:
        return await self._cart.add_line(item, quantity, options)

    async def remove(self, item_id: str, options: Iterable[SelectedOption] = ()) -> bool:
        return await self._cart.remove_line(item_id, options)

    async def update(
        self,
        item_id: str,
        quantity: int,
        options: Iterable[SelectedOption] = (),
    ) -> bool:
        return await self._cart.update_quantity(item_id, quantity, options)

    async def clear(self) -> None:
        await self._cart.clear()

    # ─── Checkout ────────────────────────────────────────────────────────────

    async def submit(
        self,
        customer: CustomerInfo | None = None,
        *,
        order_type: OrderType | str | None = OrderType.TAKEAWAY,
        payment_method: PaymentMethod = PaymentMethod.CASH,
    ) -> Result[PlacedOrder, CheckoutError]:
        """
        Place the current cart as an order.

        The cart is cleared only after the service confirms the order.
        Guard rejections never touch the cart.
        """
        customer = customer if customer is not None else CustomerInfo()
        venue = _snapshot(self._venue)
        lines = self._cart.lines

        candidate = FingerprintInput.from_cart(
            lines,
            restaurant_id=venue.restaurant_id,
            branch_id=venue.branch_id,
            table_id=venue.table_id,
            customer_phone=customer.phone.strip(),
        )

        match await self._guard.admit(candidate):
            case Error(rejection):
                return Error(rejection)
            case Ok(admission):
                pass

        context = SubmissionContext(
            venue=venue,
            tax=_snapshot(self._tax),
            customer=customer,
            order_type=order_type_from(order_type),
            payment_method=payment_method,
            note=self._note,
        )

        try:
            result = await self._submitter.submit(
                lines, context, idempotency_key=admission.fingerprint
            )
        except BaseException:
            self._guard.record_failure(admission)
            raise

        match result:
            case Ok(order):
                self._guard.record_success(admission)
                await self._cart.clear()
                self._note = ""
                self._last_order = order
                self._notify(order)
            case Error(_):
                self._guard.record_failure(admission)

        return result

    def reset_session(self) -> None:
        """Logout / navigate away: release the guard, forget the last order."""
        self._guard.release()
        self._last_order = None

    async def drain(self) -> None:
        """Wait for scheduled order notifications to finish."""
        while self._notifications:
            await asyncio.wait(tuple(self._notifications))

    def _notify(self, order: PlacedOrder) -> None:
        if self._notifier is None:
            return
        task = asyncio.create_task(self._deliver(self._notifier, order))
        self._notifications.add(task)
        task.add_done_callback(self._notified)

    def _notified(self, task: asyncio.Task[None]) -> None:
        self._notifications.discard(task)
        if not task.cancelled() and (exc := task.exception()) is not None:
            logger.warning("Order notification task crashed: %s", exc)

    @staticmethod
    async def _deliver(notifier: Notifier, order: PlacedOrder) -> None:
        result = await L.catching_async(
            lambda: notifier.order_placed(order),
            on_error=lambda e: e,
        )
        match result:
            case Error(exc):
                logger.warning("Order notification failed for %s: %s", order.order_id, exc)
            case Ok(_):
                pass


__all__ = ("CartContext", "VenueSource", "TaxSource")
