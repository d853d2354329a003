"""
Order submitter — build the draft, call the service, classify the outcome.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping
from datetime import timedelta
from typing import Any

from combinators import lift as L
from kungfu import Result, Ok, Error

from tablecart._errors import CheckoutError, CheckoutErrors
from tablecart._types import to_money
from tablecart.cart import CartLine
from tablecart.orders._payload import OBJECT_ID, SubmissionContext, build_draft
from tablecart.orders._service import OrderService, ServerRejected, TransportFailure
from tablecart.orders._types import PlacedOrder

logger = logging.getLogger(__name__)

DUPLICATE_MARKER = "_duplicateRequest"


class OrderSubmitter:
    """
    Sends one order per call. Holds no state between calls.

    Example:
        submitter = OrderSubmitter(HttpOrderService(base_url))

        match await submitter.submit(cart.lines, ctx, idempotency_key=digest):
            case Ok(order):
                ...
            case Error(err):
                ...  # VALIDATION, TRANSPORT, SERVER or RATE_LIMITED
    """

    def __init__(
        self,
        service: OrderService,
        *,
        fallback_wait: timedelta = timedelta(seconds=3),
        id_pattern: re.Pattern[str] | None = OBJECT_ID,
    ) -> None:
        self._service = service
        self._fallback_wait = fallback_wait
        self._id_pattern = id_pattern

    async def submit(
        self,
        lines: Iterable[CartLine],
        context: SubmissionContext,
        *,
        idempotency_key: str | None = None,
    ) -> Result[PlacedOrder, CheckoutError]:
        match build_draft(lines, context, id_pattern=self._id_pattern):
            case Error(err):
                logger.warning("Order draft rejected: %s", err.message)
                return Error(err)
            case Ok(draft):
                pass

        result = await L.catching_async(
            lambda: self._service.create_order(draft, idempotency_key=idempotency_key),
            on_error=self.classify,
        )

        match result:
            case Ok(body) if body:
                order = PlacedOrder.from_response(body, draft)
                logger.info("Order placed: %s (total %s)", order.order_id, order.total)
                return Ok(order)
            case Ok(_):
                logger.warning("Order service returned an empty response")
                return Error(CheckoutErrors.transport("No response from order service"))
            case Error(err):
                logger.warning("Order submission failed: %s %s", err.kind.name, err.message)
                return Error(err)

    def classify(self, exc: Exception) -> CheckoutError:
        """Map a service exception to a checkout error."""
        match exc:
            case ServerRejected(body=body) if body.get(DUPLICATE_MARKER):
                return CheckoutErrors.rate_limited(self._suggested_wait(body))
            case ServerRejected(status_code=status, message=message):
                return CheckoutErrors.server(status, message)
            case TransportFailure():
                return CheckoutErrors.transport(str(exc) or "Network error")
            case _:
                return CheckoutErrors.transport(str(exc) or type(exc).__name__)

    def _suggested_wait(self, body: Mapping[str, Any]) -> int:
        for key in ("waitTime", "retryAfter"):
            value = to_money(body.get(key))
            if value is not None and value > 0:
                return math.ceil(value)
        return max(1, math.ceil(self._fallback_wait.total_seconds()))


__all__ = ("DUPLICATE_MARKER", "OrderSubmitter")
