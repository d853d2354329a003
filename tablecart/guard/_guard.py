"""
Submission guard — single-flight, de-duplication and escalating cooldown.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime

from kungfu import Result, Ok, Error

from tablecart._errors import CheckoutError
from tablecart._types import Clock, SystemClock
from tablecart.guard._fingerprint import FingerprintInput
from tablecart.guard._graph import AttemptSpec, Admitted, Rejected, evaluate
from tablecart.guard._policy import GuardPolicy
from tablecart.guard._types import Admission, GuardPhase, GuardState
from tablecart.storage import MemoryStorage, Storage

logger = logging.getLogger(__name__)


class SubmissionGuard:
    """
    State machine in front of order submission.

    Example:
        guard = SubmissionGuard(session=MemoryStorage(), policy=GuardPolicy())

        match await guard.admit(candidate):
            case Ok(admission):
                ...  # send the order, then record_success(admission) or record_failure(admission)
            case Error(rejection):
                ...  # show rejection.message

    Note: The in-flight flag is per guard instance. Two processes (or
    tabs) sharing a session store can still both admit; the fingerprint
    sent as idempotency key is what lets the server catch that.
    """

    def __init__(
        self,
        session: Storage | None = None,
        *,
        policy: GuardPolicy | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session: Storage = session if session is not None else MemoryStorage()
        self._policy = policy if policy is not None else GuardPolicy()
        self._clock: Clock = clock if clock is not None else SystemClock()
        self._state = GuardState()
        self._lock = asyncio.Lock()

    # ─── Read side ───────────────────────────────────────────────────────────

    @property
    def policy(self) -> GuardPolicy:
        return self._policy

    @property
    def phase(self) -> GuardPhase:
        return self._state.phase

    @property
    def in_flight(self) -> bool:
        return self._state.in_flight

    @property
    def attempts(self) -> int:
        return self._state.attempts

    @property
    def cooldown_until(self) -> datetime | None:
        return self._state.cooldown_until

    def cooldown_remaining(self) -> int:
        """Whole seconds left on the cooldown, 0 when none."""
        deadline = self._state.cooldown_until
        if deadline is None:
            return 0
        left = (deadline - self._clock.now()).total_seconds()
        return max(0, math.ceil(left))

    # ─── Admission ───────────────────────────────────────────────────────────

    async def admit(self, candidate: FingerprintInput) -> Result[Admission, CheckoutError]:
        """
        Run the admission checks in order.

        Note: The lock covers the checks only, never the remote call, so
        a second caller sees in_flight=True and is rejected immediately.
        """
        async with self._lock:
            self.tick()
            spec = AttemptSpec(
                state=self._state,
                policy=self._policy,
                now=self._clock.now(),
                candidate=candidate,
                session=self._session,
            )
            verdict = await evaluate(spec)

        match verdict:
            case Admitted(admission=admission):
                logger.debug(
                    "Submission admitted (attempt %d, fingerprint %s)",
                    admission.attempt,
                    admission.fingerprint[:12],
                )
                return Ok(admission)
            case Rejected(error=error):
                logger.info("Submission rejected: %s", error.kind.name)
                return Error(error)

    def record_success(self, admission: Admission) -> None:
        """Remote call succeeded: full reset."""
        if not self._settles(admission):
            return
        self._state.settle()
        self._state.amnesty()

    def record_failure(self, admission: Admission) -> None:
        """Remote call failed: counters and cooldown stay, so failures escalate."""
        if not self._settles(admission):
            return
        self._state.settle()

    def release(self) -> None:
        """
        External reset (logout, navigate away).

        Note: Does not abort a request already on the wire. Its outcome
        is ignored when it arrives.
        """
        if self._state.in_flight:
            logger.info("Releasing in-flight submission")
        self._state.settle()

    def _settles(self, admission: Admission) -> bool:
        if self._state.current is admission:
            return True
        logger.info("Ignoring outcome of released submission %s", admission.fingerprint[:12])
        return False

    # ─── Ticker ──────────────────────────────────────────────────────────────

    def tick(self) -> None:
        """
        Scheduled re-check. Only ever clears state.

        - expired cooldown → attempts and deadline reset (full amnesty)
        - duplicate rejection older than reset delay → IDLE
        """
        now = self._clock.now()
        state = self._state

        if state.cooldown_until is not None and now >= state.cooldown_until:
            logger.info("Cooldown expired after %d attempts", state.attempts)
            state.amnesty()

        if (
            state.phase is GuardPhase.REJECTED
            and state.rejected_at is not None
            and now - state.rejected_at >= self._policy.duplicate_reset_delay
        ):
            state.phase = GuardPhase.IDLE
            state.rejected_at = None

    async def run_ticker(self) -> None:
        """
        Call tick() every policy.tick_interval until cancelled.

        Example:
            task = asyncio.create_task(guard.run_ticker())
            ...
            task.cancel()
        """
        interval = self._policy.tick_interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            self.tick()


__all__ = ("SubmissionGuard",)
