"""
Guard graph — admission checks as nodnod nodes.

Each check is a state node that only composes when every earlier check
passed. The polymorphic verdict has one case per check; exactly one
case can compose for any state.

Architecture:
    AttemptSpec (injected)
         │
         ▼
    AttemptNode ──────────────── empty_cart
         │
    NonEmptyNode ─────────────── in_flight
         │
    IdleNode ─────────────────── cooling_down
         │
    CooledDownNode ───────────── too_soon
         │
    BudgetNode (attempts += 1) ─ over_budget
         │
    WithinBudgetNode
         │
    FingerprintNode ──────────── duplicate
         │
    FreshContentNode ─────────── admit
                                   │
                  GuardVerdict (@polymorphic)
                                   │
                                   ▼
                              VerdictNode

Note: No 'from __future__ import annotations' here — nodnod reads the
type hints at runtime to resolve dependencies.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import (
    EventLoopAgent,
    Node,
    NodeError,
    Scope,
    Value,
    case,
    polymorphic,
    scalar_node,
)

from kungfu import Ok, Error

from tablecart._errors import CheckoutError, CheckoutErrors
from tablecart.guard._fingerprint import (
    FingerprintInput,
    FingerprintRecord,
    fingerprint,
    read_last,
    write_last,
)
from tablecart.guard._policy import GuardPolicy
from tablecart.guard._types import Admission, GuardPhase, GuardState
from tablecart.storage import Storage

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Input — Attempt (injected)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AttemptSpec:
    """
    One submission attempt as seen by the guard.

    Note: now is sampled once so every check sees the same instant.
    """

    state: GuardState
    policy: GuardPolicy
    now: datetime
    candidate: FingerprintInput
    session: Storage


def _seconds_until(deadline: datetime, now: datetime) -> int:
    return max(1, math.ceil((deadline - now).total_seconds()))


# ═══════════════════════════════════════════════════════════════════════════════
# Entry Node
# ═══════════════════════════════════════════════════════════════════════════════


@scalar_node
class AttemptNode:
    """Wraps AttemptSpec for graph."""

    def __init__(self, spec: AttemptSpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, spec: AttemptSpec) -> "AttemptNode":
        return cls(spec)


# ═══════════════════════════════════════════════════════════════════════════════
# Check Nodes — each composes only if its check passes
# ═══════════════════════════════════════════════════════════════════════════════


@scalar_node
class NonEmptyNode:
    """Validates: cart has at least one line."""

    def __init__(self, spec: AttemptSpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, attempt: AttemptNode) -> "NonEmptyNode":
        if attempt.spec.candidate.is_empty:
            raise NodeError("Empty cart")
        return cls(attempt.spec)


@scalar_node
class IdleNode:
    """Validates: no attempt awaiting its remote result."""

    def __init__(self, spec: AttemptSpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, non_empty: NonEmptyNode) -> "IdleNode":
        if non_empty.spec.state.in_flight:
            raise NodeError("In flight")
        return cls(non_empty.spec)


@scalar_node
class CooledDownNode:
    """Validates: no cooldown deadline in the future."""

    def __init__(self, spec: AttemptSpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, idle: IdleNode) -> "CooledDownNode":
        spec = idle.spec
        deadline = spec.state.cooldown_until
        if deadline is not None and spec.now < deadline:
            raise NodeError("Cooling down")
        return cls(spec)


@scalar_node
class BudgetNode:
    """
    Counts the attempt. Composes once the minimum interval has passed.

    Note: The increment happens here — only attempts that got this far
    count toward the budget.
    """

    def __init__(self, spec: AttemptSpec, attempts: int) -> None:
        self.spec = spec
        self.attempts = attempts

    @property
    def exceeded(self) -> bool:
        return self.attempts > self.spec.policy.attempt_budget

    @classmethod
    def __compose__(cls, cooled: CooledDownNode) -> "BudgetNode":
        spec = cooled.spec
        last = spec.state.last_attempt_at
        if last is not None and spec.now - last < spec.policy.min_interval:
            raise NodeError("Too soon")
        spec.state.attempts += 1
        return cls(spec, spec.state.attempts)


@scalar_node
class WithinBudgetNode:
    """Validates: attempt counter within budget."""

    def __init__(self, budget: BudgetNode) -> None:
        self.budget = budget

    @classmethod
    def __compose__(cls, budget: BudgetNode) -> "WithinBudgetNode":
        if budget.exceeded:
            raise NodeError("Over budget")
        return cls(budget)


@scalar_node
class FingerprintNode:
    """Digests the candidate and fetches the last recorded fingerprint."""

    def __init__(
        self,
        spec: AttemptSpec,
        attempts: int,
        digest: str,
        previous: FingerprintRecord | None,
    ) -> None:
        self.spec = spec
        self.attempts = attempts
        self.digest = digest
        self.previous = previous

    @property
    def is_duplicate(self) -> bool:
        prev = self.previous
        if prev is None or prev.fingerprint != self.digest:
            return False
        return self.spec.now - prev.recorded_at < self.spec.policy.duplicate_window

    @classmethod
    async def __compose__(cls, within: WithinBudgetNode) -> "FingerprintNode":
        spec = within.budget.spec
        digest = fingerprint(spec.candidate)

        match await read_last(spec.session):
            case Ok(previous):
                pass
            case Error(err):
                logger.warning("Session store unreadable, skipping duplicate check: %s", err.message)
                previous = None

        return cls(spec, within.budget.attempts, digest, previous)


@scalar_node
class FreshContentNode:
    """Validates: candidate is not a recent duplicate."""

    def __init__(self, fp: FingerprintNode) -> None:
        self.fp = fp

    @classmethod
    def __compose__(cls, fp: FingerprintNode) -> "FreshContentNode":
        if fp.is_duplicate:
            raise NodeError("Duplicate content")
        return cls(fp)


# ═══════════════════════════════════════════════════════════════════════════════
# Verdict Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Admitted:
    admission: Admission


@dataclass(frozen=True)
class Rejected:
    error: CheckoutError


type Verdict = Admitted | Rejected


# ═══════════════════════════════════════════════════════════════════════════════
# Polymorphic Verdict — one case per check
# ═══════════════════════════════════════════════════════════════════════════════


@polymorphic[Verdict]
class GuardVerdict:
    """
    Polymorphic router — each @case depends on the last check that passed.

    Note: Each case re-tests the condition its successor node rejects on,
    so at most one case composes.
    """

    @case
    def empty_cart(cls, node: AttemptNode) -> Verdict:
        if not node.spec.candidate.is_empty:
            raise NodeError("Not empty")
        return Rejected(CheckoutErrors.empty_cart())

    @case
    def in_flight(cls, node: NonEmptyNode) -> Verdict:
        if not node.spec.state.in_flight:
            raise NodeError("Not in flight")
        return Rejected(CheckoutErrors.already_in_flight())

    @case
    def cooling_down(cls, node: IdleNode) -> Verdict:
        spec = node.spec
        deadline = spec.state.cooldown_until
        if deadline is None or spec.now >= deadline:
            raise NodeError("No cooldown")
        return Rejected(CheckoutErrors.rate_limited(_seconds_until(deadline, spec.now)))

    @case
    def too_soon(cls, node: CooledDownNode) -> Verdict:
        spec = node.spec
        last = spec.state.last_attempt_at
        if last is None or spec.now - last >= spec.policy.min_interval:
            raise NodeError("Spaced")
        return Rejected(CheckoutErrors.too_soon())

    @case
    def over_budget(cls, node: BudgetNode) -> Verdict:
        """Engage cooldown: min(max, base × 2^(attempts - budget))."""
        if not node.exceeded:
            raise NodeError("Within budget")
        spec = node.spec
        cooldown = spec.policy.cooldown_for(node.attempts)
        spec.state.cooldown_until = spec.now + cooldown
        logger.info(
            "Cooldown engaged for %ss after %d attempts",
            cooldown.total_seconds(),
            node.attempts,
        )
        return Rejected(
            CheckoutErrors.rate_limited(_seconds_until(spec.state.cooldown_until, spec.now))
        )

    @case
    def duplicate(cls, node: FingerprintNode) -> Verdict:
        if not node.is_duplicate:
            raise NodeError("Fresh")
        state = node.spec.state
        state.phase = GuardPhase.REJECTED
        state.rejected_at = node.spec.now
        return Rejected(CheckoutErrors.duplicate_content())

    @case
    async def admit(cls, node: FreshContentNode) -> Verdict:
        """Record fingerprint, mark in flight."""
        fp = node.fp
        spec = fp.spec
        record = FingerprintRecord(fp.digest, spec.now)

        match await write_last(spec.session, record):
            case Error(err):
                logger.warning("Failed to record submission fingerprint: %s", err.message)
            case Ok(_):
                pass

        spec.state.in_flight = True
        spec.state.phase = GuardPhase.ADMITTED
        spec.state.last_attempt_at = spec.now
        admission = Admission(fp.digest, spec.now, fp.attempts)
        spec.state.current = admission
        return Admitted(admission)


# ═══════════════════════════════════════════════════════════════════════════════
# Final Node
# ═══════════════════════════════════════════════════════════════════════════════


@scalar_node
class VerdictNode:
    def __init__(self, verdict: Verdict) -> None:
        self.verdict = verdict

    @classmethod
    def __compose__(cls, verdict: GuardVerdict) -> "VerdictNode":
        return cls(verdict.value)


# ═══════════════════════════════════════════════════════════════════════════════
# Runner — pre-compiled agent
# ═══════════════════════════════════════════════════════════════════════════════

_AGENT = EventLoopAgent.build({cast(type[Node[Any, Any]], VerdictNode)})


async def evaluate(spec: AttemptSpec) -> Verdict:
    """Run every check for one attempt and return the verdict."""
    scope = Scope(detail="guard")
    async with scope:
        scope.push(Value(AttemptSpec, spec))
        run_method = cast(
            Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
            getattr(_AGENT, "run"),
        )
        await run_method(scope, {})
        result = scope.get(VerdictNode)
        if result is None:
            raise KeyError("VerdictNode not found in scope")
        return cast(VerdictNode, result.value).verdict


__all__ = (
    "AttemptSpec",
    "Admitted",
    "Rejected",
    "Verdict",
    "AttemptNode",
    "NonEmptyNode",
    "IdleNode",
    "CooledDownNode",
    "BudgetNode",
    "WithinBudgetNode",
    "FingerprintNode",
    "FreshContentNode",
    "GuardVerdict",
    "VerdictNode",
    "evaluate",
)
