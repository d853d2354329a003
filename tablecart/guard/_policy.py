"""
Guard policy — submission throttling configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta


@dataclass(frozen=True, slots=True)
class GuardPolicy:
    """
    Submission guard configuration.

    Fluent builder pattern — chain methods to configure.

    Example:
        policy = (
            GuardPolicy()
            .with_min_interval(seconds=3)
            .with_duplicate_window(seconds=10)
            .with_attempt_budget(5)
            .with_cooldown(base_seconds=5, max_seconds=60)
        )

    Note: Immutable — each method returns new GuardPolicy.
    """

    min_interval: timedelta = timedelta(seconds=3)
    duplicate_window: timedelta = timedelta(seconds=10)
    attempt_budget: int = 5
    base_cooldown: timedelta = timedelta(seconds=5)
    max_cooldown: timedelta = timedelta(seconds=60)
    duplicate_reset_delay: timedelta = timedelta(seconds=2)
    tick_interval: timedelta = timedelta(seconds=1)

    def with_min_interval(self, *, seconds: float) -> GuardPolicy:
        """Minimum spacing between two attempts that reach the budget check."""
        return replace(self, min_interval=timedelta(seconds=seconds))

    def with_duplicate_window(self, *, seconds: float) -> GuardPolicy:
        """How long an identical order stays suppressed after it was admitted."""
        return replace(self, duplicate_window=timedelta(seconds=seconds))

    def with_attempt_budget(self, attempts: int) -> GuardPolicy:
        """Attempts allowed before cooldown kicks in."""
        if attempts < 1:
            raise ValueError("attempt budget must be at least 1")
        return replace(self, attempt_budget=attempts)

    def with_cooldown(
        self,
        *,
        base_seconds: float | None = None,
        max_seconds: float | None = None,
    ) -> GuardPolicy:
        """
        Exponential cooldown: min(max, base × 2^(attempts - budget)).

        Example:
            .with_cooldown(base_seconds=5, max_seconds=60)
        """
        return replace(
            self,
            base_cooldown=timedelta(seconds=base_seconds)
            if base_seconds is not None
            else self.base_cooldown,
            max_cooldown=timedelta(seconds=max_seconds)
            if max_seconds is not None
            else self.max_cooldown,
        )

    def with_duplicate_reset_delay(self, *, seconds: float) -> GuardPolicy:
        return replace(self, duplicate_reset_delay=timedelta(seconds=seconds))

    def with_tick_interval(self, *, seconds: float) -> GuardPolicy:
        return replace(self, tick_interval=timedelta(seconds=seconds))

    def cooldown_for(self, attempts: int) -> timedelta:
        """Cooldown after `attempts` exceeded the budget."""
        over = max(0, attempts - self.attempt_budget)
        return min(self.max_cooldown, self.base_cooldown * (2**over))


__all__ = ("GuardPolicy",)
