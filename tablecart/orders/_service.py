"""
Order service — remote collaborator protocol and HTTP implementation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

import requests

from tablecart.orders._types import OrderDraft, PlacedOrder

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Exceptions — raised by services, classified by the submitter
# ═══════════════════════════════════════════════════════════════════════════════


class OrderServiceError(Exception):
    """Base class for order service failures."""


class TransportFailure(OrderServiceError):
    """No response was received (network error, timeout)."""


class ServerRejected(OrderServiceError):
    """The service answered with an error status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        body: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.body: Mapping[str, Any] = body or {}


# ═══════════════════════════════════════════════════════════════════════════════
# Protocols
# ═══════════════════════════════════════════════════════════════════════════════


class OrderService(Protocol):
    """
    Remote order creation.

    Returns the created order's body, or None/empty when the service
    gave no usable answer. Raises OrderServiceError subclasses on failure.
    """

    async def create_order(
        self, draft: OrderDraft, *, idempotency_key: str | None = None
    ) -> Mapping[str, Any] | None: ...


class Notifier(Protocol):
    """Told about placed orders. Failures never affect checkout."""

    async def order_placed(self, order: PlacedOrder) -> None: ...


# ═══════════════════════════════════════════════════════════════════════════════
# Functional Adapter
# ═══════════════════════════════════════════════════════════════════════════════

type CreateOrderFn = Callable[[OrderDraft, str | None], Awaitable[Mapping[str, Any] | None]]


class FunctionalOrderService:
    """OrderService from a plain async function."""

    def __init__(self, create: CreateOrderFn) -> None:
        self._create = create

    async def create_order(
        self, draft: OrderDraft, *, idempotency_key: str | None = None
    ) -> Mapping[str, Any] | None:
        return await self._create(draft, idempotency_key)


def service_from(create: CreateOrderFn) -> FunctionalOrderService:
    """
    Create OrderService from a function.

    Example:
        async def create(draft, key):
            return await api.post("/orders", draft.to_wire(), key=key)

        service = service_from(create)
    """
    return FunctionalOrderService(create)


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP Implementation
# ═══════════════════════════════════════════════════════════════════════════════


class HttpOrderService:
    """
    POST {base_url}/public/orders with an Idempotency-Key header.

    The blocking requests call runs in a worker thread.

    Example:
        service = HttpOrderService("https://api.example.com", timeout=10)
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 20,
        headers: Mapping[str, str] | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(headers or {})

    @property
    def url(self) -> str:
        return f"{self.base_url}/public/orders"

    async def create_order(
        self, draft: OrderDraft, *, idempotency_key: str | None = None
    ) -> Mapping[str, Any] | None:
        return await asyncio.to_thread(self._post, draft.to_wire(), idempotency_key)

    def _post(
        self, body: dict[str, Any], idempotency_key: str | None
    ) -> Mapping[str, Any] | None:
        try:
            resp = self.session.post(
                self.url,
                json=body,
                headers={"Idempotency-Key": idempotency_key} if idempotency_key else None,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Network error posting order to %s: %s", self.url, e)
            raise TransportFailure(str(e)) from e

        payload = _json_or_none(resp)
        if resp.status_code >= 400:
            message = _error_message(payload) or resp.reason or f"HTTP {resp.status_code}"
            logger.warning("Order service returned %s: %s", resp.status_code, message)
            raise ServerRejected(
                resp.status_code,
                message,
                payload if isinstance(payload, Mapping) else None,
            )

        if not isinstance(payload, Mapping):
            return None
        # {"success": true, "data": {...}} envelope
        data = payload.get("data")
        if "success" in payload and isinstance(data, Mapping):
            return data
        return payload


def _json_or_none(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _error_message(payload: Any) -> str | None:
    if isinstance(payload, Mapping):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return None


__all__ = (
    "OrderServiceError",
    "TransportFailure",
    "ServerRejected",
    "OrderService",
    "Notifier",
    "CreateOrderFn",
    "FunctionalOrderService",
    "service_from",
    "HttpOrderService",
)
