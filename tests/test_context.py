import asyncio
import logging
from decimal import Decimal

import pytest
from kungfu import Error, Ok

from tablecart import CartContext, CheckoutErrorKind, ManualClock
from tablecart import orders as O
from tablecart import pricing as P
from tablecart import storage as S

from tests.conftest import FakeOrderService, RecordingNotifier


async def fill(ctx: CartContext, pizza, burger, soda) -> None:
    """Three lines totaling $42.50."""
    await ctx.start()
    await ctx.add(burger, 2)
    await ctx.add(pizza, 1, [P.extra("Cheese")])
    await ctx.add(soda, 2)


def kind_of(result) -> CheckoutErrorKind | None:
    match result:
        case Error(err):
            return err.kind
        case Ok(_):
            return None


def test_success_clears_cart_and_resets_guard(
    ctx: CartContext,
    durable: S.MemoryStorage,
    service: FakeOrderService,
    notifier: RecordingNotifier,
    pizza,
    burger,
    soda,
) -> None:
    async def scenario():
        await fill(ctx, pizza, burger, soda)
        assert len(ctx.lines) == 3
        assert ctx.total == Decimal("42.50")
        assert ctx.item_count == 5
        result = await ctx.submit(O.CustomerInfo(phone="555-123-4567"), order_type="dineIn")
        await ctx.drain()
        return result

    result = asyncio.run(scenario())

    match result:
        case Ok(order):
            assert order.order_id == "order-1"
            # 42.50 + 10 %
            assert order.total == Decimal("46.75")
        case Error(err):
            pytest.fail(err.message)

    assert ctx.lines == ()
    assert "cart" not in durable.snapshot()
    assert ctx.guard.attempts == 0
    assert not ctx.submitting
    assert ctx.last_order is not None
    assert notifier.placed == [ctx.last_order]

    draft, key = service.calls[0]
    assert draft.order_type is O.OrderType.DINE_IN
    assert draft.subtotal == Decimal("42.50")
    assert key is not None and len(key) == 64


def test_failure_keeps_cart(
    ctx: CartContext,
    durable: S.MemoryStorage,
    service: FakeOrderService,
    pizza,
    burger,
    soda,
) -> None:
    service.respond(O.ServerRejected(503, "Kitchen closed"))

    async def scenario():
        await fill(ctx, pizza, burger, soda)
        return await ctx.submit()

    result = asyncio.run(scenario())

    match result:
        case Error(err):
            assert err.kind is CheckoutErrorKind.SERVER
            assert err.status_code == 503
            assert err.message == "Kitchen closed"
        case Ok(_):
            pytest.fail("submission should fail")

    assert len(ctx.lines) == 3
    assert ctx.total == Decimal("42.50")
    assert "cart" in durable.snapshot()
    assert ctx.guard.attempts == 1
    assert not ctx.submitting
    assert ctx.last_order is None


def test_second_submit_while_in_flight_is_rejected(
    ctx: CartContext, service: FakeOrderService, pizza, burger, soda
) -> None:
    async def scenario():
        await fill(ctx, pizza, burger, soda)
        service.gate = asyncio.Event()

        first = asyncio.create_task(ctx.submit())
        for _ in range(100):
            if service.calls:
                break
            await asyncio.sleep(0)

        assert ctx.submitting
        second = await ctx.submit()
        lines_during = ctx.lines

        service.gate.set()
        return await first, second, lines_during

    first, second, lines_during = asyncio.run(scenario())

    assert kind_of(second) is CheckoutErrorKind.ALREADY_IN_FLIGHT
    assert len(lines_during) == 3
    assert kind_of(first) is None
    assert len(service.calls) == 1


async def until_calls(service: FakeOrderService, count: int) -> None:
    for _ in range(100):
        if len(service.calls) >= count:
            return
        await asyncio.sleep(0)
    pytest.fail(f"service saw {len(service.calls)} calls, expected {count}")


def test_released_submission_finishing_late_keeps_newer_one_in_flight(
    ctx: CartContext, clock: ManualClock, service: FakeOrderService, pizza, burger, soda
) -> None:
    service.respond(O.TransportFailure("timed out"))

    async def scenario():
        await fill(ctx, pizza, burger, soda)
        service.gates = {1: asyncio.Event(), 2: asyncio.Event()}

        first = asyncio.create_task(ctx.submit())
        await until_calls(service, 1)
        clock.advance(seconds=5)
        ctx.reset_session()

        clock.advance(seconds=6)
        second = asyncio.create_task(ctx.submit())
        await until_calls(service, 2)

        service.gates[1].set()
        first_result = await first
        submitting_after_first = ctx.submitting

        clock.advance(seconds=3)
        third = await ctx.submit()

        service.gates[2].set()
        return first_result, submitting_after_first, third, await second

    first, submitting_after_first, third, second = asyncio.run(scenario())

    assert kind_of(first) is CheckoutErrorKind.TRANSPORT
    assert submitting_after_first
    assert kind_of(third) is CheckoutErrorKind.ALREADY_IN_FLIGHT
    assert kind_of(second) is None
    assert len(service.calls) == 2
    assert not ctx.submitting
    assert ctx.guard.attempts == 0


def test_unchanged_resubmit_is_duplicate_until_window_passes(
    ctx: CartContext, clock: ManualClock, service: FakeOrderService, pizza, burger, soda
) -> None:
    service.respond(O.TransportFailure("timed out"))

    async def scenario():
        await fill(ctx, pizza, burger, soda)
        failed = await ctx.submit()
        clock.advance(seconds=3)
        duplicate = await ctx.submit()
        clock.advance(seconds=8)
        later = await ctx.submit()
        return failed, duplicate, later

    failed, duplicate, later = asyncio.run(scenario())

    assert kind_of(failed) is CheckoutErrorKind.TRANSPORT
    assert kind_of(duplicate) is CheckoutErrorKind.DUPLICATE_CONTENT
    assert kind_of(later) is None
    assert len(service.calls) == 2


def test_validation_error_counts_as_failed_attempt(
    ctx: CartContext, service: FakeOrderService
) -> None:
    stale = P.CatalogItem(id="legacy-7", name="Old Special", base_price=5)

    async def scenario():
        await ctx.start()
        await ctx.add(stale)
        return await ctx.submit()

    result = asyncio.run(scenario())

    assert kind_of(result) is CheckoutErrorKind.VALIDATION
    assert service.calls == []
    assert len(ctx.lines) == 1
    assert ctx.guard.attempts == 1
    assert not ctx.submitting


def test_empty_cart_is_rejected(ctx: CartContext, service: FakeOrderService) -> None:
    async def scenario():
        await ctx.start()
        return await ctx.submit()

    assert kind_of(asyncio.run(scenario())) is CheckoutErrorKind.EMPTY_CART
    assert service.calls == []


def test_notifier_failure_does_not_change_result(
    durable: S.MemoryStorage,
    service: FakeOrderService,
    venue: O.VenueContext,
    clock: ManualClock,
    caplog: pytest.LogCaptureFixture,
    burger,
) -> None:
    ctx = CartContext.create(
        durable, service, venue=venue, notifier=RecordingNotifier(fail=True), clock=clock
    )

    async def scenario():
        await ctx.start()
        await ctx.add(burger)
        result = await ctx.submit()
        await ctx.drain()
        return result

    with caplog.at_level(logging.WARNING):
        result = asyncio.run(scenario())

    assert kind_of(result) is None
    assert ctx.lines == ()
    assert "Order notification failed" in caplog.text


class StalledNotifier:
    def __init__(self) -> None:
        self.started = False

    async def order_placed(self, order: O.PlacedOrder) -> None:
        self.started = True
        await asyncio.Event().wait()


def test_stalled_notifier_does_not_hold_submit(
    durable: S.MemoryStorage,
    service: FakeOrderService,
    venue: O.VenueContext,
    clock: ManualClock,
    burger,
) -> None:
    notifier = StalledNotifier()
    ctx = CartContext.create(durable, service, venue=venue, notifier=notifier, clock=clock)

    async def scenario():
        await ctx.start()
        await ctx.add(burger)
        result = await asyncio.wait_for(ctx.submit(), timeout=1)
        await asyncio.sleep(0)
        return result

    result = asyncio.run(scenario())

    assert kind_of(result) is None
    assert notifier.started
    assert ctx.lines == ()
    assert ctx.last_order is not None


def test_note_and_tax_snapshot_reach_the_payload(
    durable: S.MemoryStorage,
    service: FakeOrderService,
    venue: O.VenueContext,
    clock: ManualClock,
    burger,
) -> None:
    settings = {"percentage": 5, "name": "GST", "country": "Canada"}
    ctx = CartContext.create(
        durable,
        service,
        venue=lambda: venue,
        tax=lambda: O.TaxContext.from_settings(settings),
        clock=clock,
    )

    async def scenario():
        await ctx.start()
        await ctx.add(burger, 2)
        ctx.set_note("ring the bell")
        return await ctx.submit(payment_method=O.PaymentMethod.UPI)

    asyncio.run(scenario())

    draft, _ = service.calls[0]
    body = draft.to_wire()
    assert body["notes"] == "ring the bell"
    assert body["paymentMethod"] == "upi"
    assert body["taxAmount"] == 1.25
    assert body["taxDetails"]["countryCode"] == "CA"
    assert ctx.note == ""


def test_reset_session_releases_guard(
    ctx: CartContext, service: FakeOrderService, pizza, burger, soda
) -> None:
    async def scenario():
        await fill(ctx, pizza, burger, soda)
        await ctx.submit()
        assert ctx.last_order is not None
        ctx.reset_session()

    asyncio.run(scenario())

    assert ctx.last_order is None
    assert not ctx.submitting


def test_cart_operations_delegate(ctx: CartContext, clock: ManualClock, pizza, burger) -> None:
    async def scenario():
        await ctx.start()
        await ctx.add(pizza, 1, [P.size("L")])
        await ctx.add(burger)
        await ctx.update(pizza.id, 3, [P.size("L")])
        await ctx.remove(burger.id)

    asyncio.run(scenario())

    assert ctx.item_count == 3
    assert ctx.total == Decimal("36")

    asyncio.run(ctx.clear())
    assert ctx.lines == ()
