"""
Guard — single-flight, content de-duplication, escalating cooldown.

    from tablecart import guard as Gd

    guard = Gd.SubmissionGuard(
        session=S.MemoryStorage(),
        policy=Gd.GuardPolicy().with_attempt_budget(5),
    )
    candidate = Gd.FingerprintInput.from_cart(
        cart.lines, restaurant_id="r1", branch_id="b1", customer_phone="555"
    )
    match await guard.admit(candidate):
        case Ok(admission): ...
        case Error(rejection): ...

Checks, in order (first failing check wins):

    1. empty cart            → EMPTY_CART
    2. attempt in flight     → ALREADY_IN_FLIGHT
    3. cooldown active       → RATE_LIMITED(seconds)
    4. < min_interval        → TOO_SOON
    5. attempts > budget     → RATE_LIMITED (cooldown engaged)
    6. same fingerprint < window → DUPLICATE_CONTENT
    7. admit: record fingerprint, mark in flight
"""

from tablecart.guard._types import (
    GuardPhase,
    GuardState,
    Admission,
)
from tablecart.guard._policy import GuardPolicy
from tablecart.guard._fingerprint import (
    FINGERPRINT_KEY,
    TIMESTAMP_KEY,
    FingerprintInput,
    FingerprintRecord,
    fingerprint,
    read_last,
)
from tablecart.guard._graph import (
    AttemptSpec,
    Admitted,
    Rejected,
    Verdict,
    GuardVerdict,
    evaluate,
)
from tablecart.guard._guard import SubmissionGuard

__all__ = (
    # Types
    "GuardPhase",
    "GuardState",
    "Admission",
    # Policy
    "GuardPolicy",
    # Fingerprint
    "FINGERPRINT_KEY",
    "TIMESTAMP_KEY",
    "FingerprintInput",
    "FingerprintRecord",
    "fingerprint",
    "read_last",
    # Graph
    "AttemptSpec",
    "Admitted",
    "Rejected",
    "Verdict",
    "GuardVerdict",
    "evaluate",
    # Guard
    "SubmissionGuard",
)
