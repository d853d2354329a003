"""
Guard types — phase, mutable state, admission ticket.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto


# ═══════════════════════════════════════════════════════════════════════════════
# Phase — Observable lifecycle
# ═══════════════════════════════════════════════════════════════════════════════


class GuardPhase(Enum):
    """
    Phase of the submission guard.

    Lifecycle:
        IDLE → ADMITTED → IDLE        (success or failure reported)
        IDLE → REJECTED → IDLE        (duplicate content, after reset delay)
    """

    IDLE = auto()
    ADMITTED = auto()
    REJECTED = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# State — Process-lifetime, never persisted
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class GuardState:
    """
    Mutable guard counters.

    Note: Owned by one SubmissionGuard; the graph nodes mutate it only
    while the guard's admission lock is held.

    current is the admission whose outcome is still awaited; release()
    drops it, so a late outcome for it is ignored.
    """

    phase: GuardPhase = GuardPhase.IDLE
    in_flight: bool = False
    attempts: int = 0
    cooldown_until: datetime | None = None
    last_attempt_at: datetime | None = None
    rejected_at: datetime | None = None
    current: Admission | None = None

    def amnesty(self) -> None:
        self.attempts = 0
        self.cooldown_until = None

    def settle(self) -> None:
        self.in_flight = False
        self.phase = GuardPhase.IDLE
        self.current = None


# ═══════════════════════════════════════════════════════════════════════════════
# Admission — Ticket handed to the submitter
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Admission:
    """
    Proof that an attempt passed every check.

    fingerprint doubles as the idempotency key sent to the order service.
    """

    fingerprint: str
    admitted_at: datetime
    attempt: int


__all__ = (
    "GuardPhase",
    "GuardState",
    "Admission",
)
