"""
Core types for tablecart.

Re-exports from kungfu + clock abstraction + money helpers.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Protocol

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Prices and totals. Never float."""

type RawPrice = Decimal | int | float | str | None
"""A price as it arrives from a catalog document, possibly malformed."""

CENT = Decimal("0.01")


def to_money(raw: RawPrice) -> Money | None:
    """
    Parse a catalog price.

    Returns None for anything that is not a finite number.
    Note: bool is rejected even though it is an int subclass.
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw)) if isinstance(raw, float) else Decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not value.is_finite():
        return None
    return value


# ═══════════════════════════════════════════════════════════════════════════════
# Clock — Injected Time Source
# ═══════════════════════════════════════════════════════════════════════════════


class Clock(Protocol):
    """
    Time source protocol.

    Every debounce, interval, cooldown and duplicate window reads time
    through a Clock, so state transitions are testable without sleeping.
    """

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time (naive local datetime)."""

    def now(self) -> datetime:
        return datetime.now()


class ManualClock:
    """
    Clock that only moves when told to.

    Example:
        clock = ManualClock()
        clock.advance(seconds=3)
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start if start is not None else datetime(2024, 1, 1, 12, 0, 0)

    def now(self) -> datetime:
        return self._now

    def advance(
        self,
        *,
        seconds: float = 0,
        milliseconds: float = 0,
        delta: timedelta | None = None,
    ) -> datetime:
        step = delta if delta is not None else timedelta(
            seconds=seconds, milliseconds=milliseconds
        )
        self._now = self._now + step
        return self._now


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Money
    "Money",
    "RawPrice",
    "CENT",
    "to_money",
    # Clock
    "Clock",
    "SystemClock",
    "ManualClock",
)
