"""
Submission fingerprint — content digest of a candidate order.

Recorded in session storage right before the remote call, compared on
every new attempt, aged out by timestamp (never deleted).
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from kungfu import Result, Ok, Error

from tablecart._types import Money
from tablecart.cart import CartLine, cart_total
from tablecart.storage import Storage, StorageError

logger = logging.getLogger(__name__)

FINGERPRINT_KEY = "lastOrderFingerprint"
TIMESTAMP_KEY = "lastOrderTimestamp"


# ═══════════════════════════════════════════════════════════════════════════════
# Input
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class FingerprintInput:
    """Everything the digest covers. Line order does not matter."""

    restaurant_id: str
    branch_id: str
    table_id: str | None
    lines: tuple[tuple[str, int, Money], ...]
    customer_phone: str
    subtotal: Money

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @classmethod
    def from_cart(
        cls,
        lines: Iterable[CartLine],
        *,
        restaurant_id: str,
        branch_id: str,
        table_id: str | None = None,
        customer_phone: str = "",
    ) -> FingerprintInput:
        snapshot = tuple(lines)
        return cls(
            restaurant_id=restaurant_id,
            branch_id=branch_id,
            table_id=table_id,
            lines=tuple(
                (line.item_id, line.quantity, line.unit_price) for line in snapshot
            ),
            customer_phone=customer_phone,
            subtotal=cart_total(snapshot),
        )


def fingerprint(data: FingerprintInput) -> str:
    """Deterministic sha256 over the order's content."""
    doc = {
        "restaurantId": data.restaurant_id,
        "branchId": data.branch_id,
        "tableId": data.table_id,
        "items": sorted(
            [item_id, quantity, str(price)] for item_id, quantity, price in data.lines
        ),
        "customerPhone": data.customer_phone,
        "subtotal": str(data.subtotal),
    }
    encoded = json.dumps(doc, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


# ═══════════════════════════════════════════════════════════════════════════════
# Record — Session storage round-trip
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class FingerprintRecord:
    fingerprint: str
    recorded_at: datetime


async def read_last(session: Storage) -> Result[FingerprintRecord | None, StorageError]:
    """Last recorded fingerprint, or None when absent or unreadable."""
    match await session.get(FINGERPRINT_KEY):
        case Error(err):
            return Error(err)
        case Ok(None):
            return Ok(None)
        case Ok(digest):
            pass

    match await session.get(TIMESTAMP_KEY):
        case Error(err):
            return Error(err)
        case Ok(None):
            return Ok(None)
        case Ok(stamp):
            try:
                return Ok(FingerprintRecord(digest, datetime.fromisoformat(stamp)))
            except ValueError:
                logger.warning("Ignoring unreadable fingerprint timestamp %r", stamp)
                return Ok(None)


async def write_last(
    session: Storage, record: FingerprintRecord
) -> Result[None, StorageError]:
    match await session.set(FINGERPRINT_KEY, record.fingerprint):
        case Error(err):
            return Error(err)
        case Ok(_):
            pass
    return await session.set(TIMESTAMP_KEY, record.recorded_at.isoformat())


__all__ = (
    "FINGERPRINT_KEY",
    "TIMESTAMP_KEY",
    "FingerprintInput",
    "fingerprint",
    "FingerprintRecord",
    "read_last",
    "write_last",
)
