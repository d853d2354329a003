import asyncio
import contextlib
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from kungfu import Error, Ok

from tablecart import CheckoutErrorKind, ManualClock
from tablecart import guard as Gd
from tablecart import storage as S


def candidate(quantity: int = 1, phone: str = "") -> Gd.FingerprintInput:
    price = Decimal("9.00")
    return Gd.FingerprintInput(
        restaurant_id="r1",
        branch_id="b1",
        table_id=None,
        lines=(("item-1", quantity, price),),
        customer_phone=phone,
        subtotal=price * quantity,
    )


EMPTY = Gd.FingerprintInput("r1", "b1", None, (), "", Decimal("0"))


@pytest.fixture
def guard(session: S.MemoryStorage, clock: ManualClock) -> Gd.SubmissionGuard:
    return Gd.SubmissionGuard(session, clock=clock)


def kind_of(result) -> CheckoutErrorKind | None:
    match result:
        case Error(err):
            return err.kind
        case Ok(_):
            return None


async def admitted(guard: Gd.SubmissionGuard, attempt: Gd.FingerprintInput) -> Gd.Admission:
    match await guard.admit(attempt):
        case Ok(admission):
            return admission
        case Error(err):
            pytest.fail(err.message)


# ═══════════════════════════════════════════════════════════════════════════════
# Checks in order
# ═══════════════════════════════════════════════════════════════════════════════


def test_admits_and_marks_in_flight(guard: Gd.SubmissionGuard, session: S.MemoryStorage) -> None:
    result = asyncio.run(guard.admit(candidate()))

    match result:
        case Ok(admission):
            assert admission.attempt == 1
            assert admission.fingerprint == Gd.fingerprint(candidate())
        case Error(err):
            pytest.fail(err.message)

    assert guard.in_flight
    assert guard.phase is Gd.GuardPhase.ADMITTED
    stored = session.snapshot()
    assert stored[Gd.FINGERPRINT_KEY] == Gd.fingerprint(candidate())
    assert datetime.fromisoformat(stored[Gd.TIMESTAMP_KEY]) == datetime(2024, 1, 1, 12, 0, 0)


def test_empty_cart_changes_nothing(guard: Gd.SubmissionGuard, session: S.MemoryStorage) -> None:
    result = asyncio.run(guard.admit(EMPTY))

    assert kind_of(result) is CheckoutErrorKind.EMPTY_CART
    assert guard.attempts == 0
    assert not guard.in_flight
    assert session.writes == 0


def test_second_admit_while_in_flight(guard: Gd.SubmissionGuard, clock: ManualClock) -> None:
    async def scenario():
        await guard.admit(candidate())
        clock.advance(seconds=30)
        return await guard.admit(candidate(quantity=2))

    assert kind_of(asyncio.run(scenario())) is CheckoutErrorKind.ALREADY_IN_FLIGHT
    assert guard.attempts == 1


def test_too_soon_after_previous_attempt(guard: Gd.SubmissionGuard, clock: ManualClock) -> None:
    async def scenario():
        guard.record_failure(await admitted(guard, candidate()))
        clock.advance(seconds=2)
        early = await guard.admit(candidate(quantity=2))
        clock.advance(seconds=1)
        spaced = await guard.admit(candidate(quantity=2))
        return early, spaced

    early, spaced = asyncio.run(scenario())

    assert kind_of(early) is CheckoutErrorKind.TOO_SOON
    assert kind_of(spaced) is None
    assert guard.attempts == 2


def test_duplicate_content_within_window(guard: Gd.SubmissionGuard, clock: ManualClock) -> None:
    async def scenario():
        guard.record_failure(await admitted(guard, candidate()))
        clock.advance(seconds=3)
        duplicate = await guard.admit(candidate())
        phase_after = guard.phase
        clock.advance(seconds=2)
        guard.tick()
        phase_reset = guard.phase
        clock.advance(seconds=6)
        later = await guard.admit(candidate())
        return duplicate, phase_after, phase_reset, later

    duplicate, phase_after, phase_reset, later = asyncio.run(scenario())

    assert kind_of(duplicate) is CheckoutErrorKind.DUPLICATE_CONTENT
    assert phase_after is Gd.GuardPhase.REJECTED
    assert phase_reset is Gd.GuardPhase.IDLE
    assert kind_of(later) is None


def test_changed_content_is_not_a_duplicate(guard: Gd.SubmissionGuard, clock: ManualClock) -> None:
    async def scenario():
        guard.record_failure(await admitted(guard, candidate()))
        clock.advance(seconds=3)
        return await guard.admit(candidate(quantity=2))

    assert kind_of(asyncio.run(scenario())) is None


# ═══════════════════════════════════════════════════════════════════════════════
# Escalating cooldown
# ═══════════════════════════════════════════════════════════════════════════════


def test_cooldown_engages_after_budget(guard: Gd.SubmissionGuard, clock: ManualClock) -> None:
    async def scenario():
        for quantity in range(1, 6):
            clock.advance(seconds=3)
            guard.record_failure(await admitted(guard, candidate(quantity)))

        clock.advance(seconds=3)
        sixth = await guard.admit(candidate(6))
        clock.advance(seconds=5)
        still_cooling = await guard.admit(candidate(7))
        clock.advance(seconds=5)
        after_cooldown = await guard.admit(candidate(8))
        return sixth, still_cooling, after_cooldown

    sixth, still_cooling, after_cooldown = asyncio.run(scenario())

    match sixth:
        case Error(err):
            assert err.kind is CheckoutErrorKind.RATE_LIMITED
            assert err.seconds_remaining is not None and err.seconds_remaining >= 5
            assert err.seconds_remaining == 10
        case Ok(_):
            pytest.fail("sixth attempt should be rate limited")

    match still_cooling:
        case Error(err):
            assert err.kind is CheckoutErrorKind.RATE_LIMITED
            assert err.seconds_remaining == 5
        case Ok(_):
            pytest.fail("cooldown should still be active")

    # expiry is a full amnesty
    assert kind_of(after_cooldown) is None
    assert guard.attempts == 1
    assert guard.cooldown_until is None


def test_cooldown_doubles_and_caps() -> None:
    policy = Gd.GuardPolicy()

    assert policy.cooldown_for(6) == timedelta(seconds=10)
    assert policy.cooldown_for(7) == timedelta(seconds=20)
    assert policy.cooldown_for(7) >= timedelta(seconds=10)
    assert policy.cooldown_for(20) == timedelta(seconds=60)

    custom = policy.with_attempt_budget(2).with_cooldown(base_seconds=1, max_seconds=3)
    assert custom.cooldown_for(3) == timedelta(seconds=2)
    assert custom.cooldown_for(9) == timedelta(seconds=3)


def test_policy_rejects_zero_budget() -> None:
    with pytest.raises(ValueError):
        Gd.GuardPolicy().with_attempt_budget(0)


def test_success_resets_counters(guard: Gd.SubmissionGuard, clock: ManualClock) -> None:
    async def scenario():
        guard.record_failure(await admitted(guard, candidate()))
        clock.advance(seconds=3)
        guard.record_success(await admitted(guard, candidate(2)))

    asyncio.run(scenario())

    assert guard.attempts == 0
    assert not guard.in_flight
    assert guard.phase is Gd.GuardPhase.IDLE


def test_release_clears_in_flight_only(guard: Gd.SubmissionGuard) -> None:
    asyncio.run(guard.admit(candidate()))

    guard.release()

    assert not guard.in_flight
    assert guard.attempts == 1


def test_released_admission_outcome_is_ignored(
    guard: Gd.SubmissionGuard, clock: ManualClock
) -> None:
    async def scenario():
        stale = await admitted(guard, candidate())
        guard.release()
        clock.advance(seconds=3)
        current = await admitted(guard, candidate(2))
        guard.record_failure(stale)
        failed_stale = (guard.in_flight, guard.phase)
        guard.record_success(stale)
        succeeded_stale = (guard.in_flight, guard.attempts)
        guard.record_failure(current)
        return failed_stale, succeeded_stale

    failed_stale, succeeded_stale = asyncio.run(scenario())

    assert failed_stale == (True, Gd.GuardPhase.ADMITTED)
    assert succeeded_stale == (True, 2)
    assert not guard.in_flight
    assert guard.attempts == 2



def test_ticker_clears_expired_cooldown(session: S.MemoryStorage, clock: ManualClock) -> None:
    policy = Gd.GuardPolicy().with_attempt_budget(1).with_tick_interval(seconds=0.001)
    guard = Gd.SubmissionGuard(session, policy=policy, clock=clock)

    async def scenario() -> None:
        guard.record_failure(await admitted(guard, candidate()))
        clock.advance(seconds=3)
        await guard.admit(candidate(2))
        assert guard.cooldown_remaining() == 10

        clock.advance(seconds=11)
        task = asyncio.create_task(guard.run_ticker())
        await asyncio.sleep(0.05)
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert guard.cooldown_until is None
    assert guard.attempts == 0
    assert guard.cooldown_remaining() == 0


# ═══════════════════════════════════════════════════════════════════════════════
# Fingerprint + session store
# ═══════════════════════════════════════════════════════════════════════════════


def test_fingerprint_ignores_line_order() -> None:
    a = Gd.FingerprintInput(
        "r1", "b1", "t1", (("x", 1, Decimal("2")), ("y", 2, Decimal("3"))), "555", Decimal("8")
    )
    b = Gd.FingerprintInput(
        "r1", "b1", "t1", (("y", 2, Decimal("3")), ("x", 1, Decimal("2"))), "555", Decimal("8")
    )

    assert Gd.fingerprint(a) == Gd.fingerprint(b)
    assert len(Gd.fingerprint(a)) == 64


def test_fingerprint_covers_venue_and_phone() -> None:
    base = Gd.fingerprint(candidate())

    assert Gd.fingerprint(candidate(phone="555-000-1111")) != base
    assert Gd.fingerprint(candidate(quantity=2)) != base


def test_unreadable_session_skips_duplicate_check(clock: ManualClock) -> None:
    async def get(key: str):
        return Error(S.StorageError("session storage disabled"))

    async def set(key: str, value: str):
        return Error(S.StorageError("session storage disabled"))

    async def remove(key: str):
        return Ok(False)

    guard = Gd.SubmissionGuard(S.storage_from(get=get, set=set, remove=remove), clock=clock)

    async def scenario():
        first = await guard.admit(candidate())
        match first:
            case Ok(admission):
                guard.record_failure(admission)
            case Error(_):
                pass
        clock.advance(seconds=3)
        second = await guard.admit(candidate())
        return first, second

    first, second = asyncio.run(scenario())

    assert kind_of(first) is None
    assert kind_of(second) is None


def test_bad_timestamp_is_ignored(clock: ManualClock) -> None:
    session = S.MemoryStorage(
        {
            Gd.FINGERPRINT_KEY: Gd.fingerprint(candidate()),
            Gd.TIMESTAMP_KEY: "yesterday",
        }
    )
    guard = Gd.SubmissionGuard(session, clock=clock)

    assert kind_of(asyncio.run(guard.admit(candidate()))) is None
