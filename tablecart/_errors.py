"""
Checkout errors — one taxonomy shared by the guard and the submitter.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


# ═══════════════════════════════════════════════════════════════════════════════
# Error Kind
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutErrorKind(Enum):
    """
    Kinds of checkout errors.

    Guard rejections (local, never retried automatically):
        EMPTY_CART, ALREADY_IN_FLIGHT, TOO_SOON, RATE_LIMITED, DUPLICATE_CONTENT

    Submitter failures:
        VALIDATION  — malformed line data, detected before the network
        TRANSPORT   — no response received
        SERVER      — 4xx/5xx with a body
    """

    EMPTY_CART = auto()
    ALREADY_IN_FLIGHT = auto()
    TOO_SOON = auto()
    RATE_LIMITED = auto()
    DUPLICATE_CONTENT = auto()
    VALIDATION = auto()
    TRANSPORT = auto()
    SERVER = auto()


GUARD_KINDS = frozenset(
    {
        CheckoutErrorKind.EMPTY_CART,
        CheckoutErrorKind.ALREADY_IN_FLIGHT,
        CheckoutErrorKind.TOO_SOON,
        CheckoutErrorKind.RATE_LIMITED,
        CheckoutErrorKind.DUPLICATE_CONTENT,
    }
)


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutError:
    """
    Checkout operation error.

    Note: payload fields are only set for the kinds that use them.
        seconds_remaining — RATE_LIMITED
        status_code       — SERVER
        line              — VALIDATION (description of the offending line)
    """

    kind: CheckoutErrorKind
    message: str
    seconds_remaining: int | None = None
    status_code: int | None = None
    line: str | None = None

    @property
    def is_rejection(self) -> bool:
        """True if the guard refused the attempt before anything was sent."""
        return self.kind in GUARD_KINDS


class CheckoutErrors:
    @staticmethod
    def empty_cart() -> CheckoutError:
        return CheckoutError(CheckoutErrorKind.EMPTY_CART, "Your cart is empty")

    @staticmethod
    def already_in_flight() -> CheckoutError:
        return CheckoutError(
            CheckoutErrorKind.ALREADY_IN_FLIGHT,
            "Your order is already being placed",
        )

    @staticmethod
    def too_soon() -> CheckoutError:
        return CheckoutError(
            CheckoutErrorKind.TOO_SOON,
            "Please wait a moment before trying again",
        )

    @staticmethod
    def rate_limited(seconds: int) -> CheckoutError:
        return CheckoutError(
            CheckoutErrorKind.RATE_LIMITED,
            f"Too many attempts. Please wait {seconds} seconds",
            seconds_remaining=seconds,
        )

    @staticmethod
    def duplicate_content() -> CheckoutError:
        return CheckoutError(
            CheckoutErrorKind.DUPLICATE_CONTENT,
            "This order was just submitted",
        )

    @staticmethod
    def validation(line: str, message: str) -> CheckoutError:
        return CheckoutError(CheckoutErrorKind.VALIDATION, message, line=line)

    @staticmethod
    def transport(message: str) -> CheckoutError:
        return CheckoutError(CheckoutErrorKind.TRANSPORT, message)

    @staticmethod
    def server(status_code: int, message: str) -> CheckoutError:
        return CheckoutError(
            CheckoutErrorKind.SERVER, message, status_code=status_code
        )


__all__ = (
    "CheckoutErrorKind",
    "CheckoutError",
    "CheckoutErrors",
    "GUARD_KINDS",
)
