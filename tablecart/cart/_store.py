"""
Cart store — in-memory cart with write-through persistence.

The in-memory line list is the only source of truth. The durable store
is a mirror: read once by load(), written after every mutation once the
load has completed, never read again.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import datetime

from kungfu import Result, Ok, Error

from tablecart._types import Clock, Money, SystemClock
from tablecart.cart._types import (
    CartLine,
    CartPolicy,
    LineIdentity,
    cart_total,
    line_identity,
)
from tablecart.pricing import CatalogItem, SelectedOption, resolve_price
from tablecart.storage import Storage, StorageError

logger = logging.getLogger(__name__)


class CartStore:
    """
    Ordered cart lines, merged by identity.

    Example:
        cart = CartStore(FileStorage("data/cart.json"))
        await cart.load()
        await cart.add_line(burger, 2, [P.size("L")])
        cart.total  # Decimal
    """

    def __init__(
        self,
        storage: Storage,
        *,
        policy: CartPolicy | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._storage = storage
        self._policy = policy if policy is not None else CartPolicy()
        self._clock: Clock = clock if clock is not None else SystemClock()
        self._lines: list[CartLine] = []
        self._loaded = False
        self._last_add: dict[str, datetime] = {}

    # ─── Read side ───────────────────────────────────────────────────────────

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines)

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def subtotal(self) -> Money:
        """Sum of line subtotals, before tax."""
        return cart_total(self._lines)

    @property
    def total(self) -> Money:
        """Same as subtotal; tax is added by the order draft."""
        return self.subtotal

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def find(self, item_id: str, options: Iterable[SelectedOption] = ()) -> CartLine | None:
        identity = line_identity(item_id, options)
        index = self._index_of(identity)
        return self._lines[index] if index is not None else None

    # ─── Load ────────────────────────────────────────────────────────────────

    async def load(self) -> Result[int, StorageError]:
        """
        Load the persisted cart. Runs once.

        Lines added before the load finished are merged onto the persisted
        ones and written through. On a storage error the store stays
        unloaded (and so never writes) until load() succeeds.
        """
        if self._loaded:
            return Ok(len(self._lines))

        match await self._storage.get(self._policy.storage_key):
            case Error(err):
                logger.warning("Cart load failed: %s", err.message)
                return Error(err)
            case Ok(raw):
                persisted = self._parse(raw)

        early = self._lines
        self._lines = persisted
        for line in early:
            self._merge(line)
        self._loaded = True
        logger.info("Cart loaded with %d line(s)", len(self._lines))

        if early:
            await self._persist()
        return Ok(len(self._lines))

    def _parse(self, raw: str | None) -> list[CartLine]:
        if not raw:
            return []
        try:
            docs = json.loads(raw)
        except ValueError:
            logger.warning("Persisted cart is not valid JSON; starting empty")
            return []
        if not isinstance(docs, list):
            logger.warning("Persisted cart is not a list; starting empty")
            return []

        lines: list[CartLine] = []
        for doc in docs:
            try:
                line = CartLine.from_mapping(doc)
            except (ValueError, AttributeError) as e:
                logger.warning("Dropping malformed persisted cart line: %s", e)
                continue
            index = self._index_in(lines, line.identity)
            if index is None:
                lines.append(line)
            else:
                lines[index] = lines[index].with_quantity(lines[index].quantity + line.quantity)
        return lines

    # ─── Mutations ───────────────────────────────────────────────────────────

    async def add_line(
        self,
        item: CatalogItem,
        quantity: int = 1,
        options: Iterable[SelectedOption] = (),
    ) -> CartLine | None:
        """
        Add quantity of an item with the given options.

        Returns the resulting line, or None when the call was dropped by
        the per-item debounce.
        """
        if quantity < 1:
            raise ValueError("quantity must be at least 1")

        now = self._clock.now()
        window = self._policy.debounce
        last = self._last_add.get(item.id)
        if last is not None and now - last < window:
            logger.debug("Dropped repeated add of %s within debounce window", item.id)
            return None
        self._last_add = {k: t for k, t in self._last_add.items() if now - t < window}
        self._last_add[item.id] = now

        selected = tuple(options)
        line = self._merge(
            CartLine(
                item_id=item.id,
                unit_price=resolve_price(item, selected),
                quantity=quantity,
                options=selected,
                name=item.name,
            )
        )
        logger.debug("Cart line %s now x%d", line.item_id, line.quantity)
        await self._persist()
        return line

    async def remove_line(
        self,
        item_id: str,
        options: Iterable[SelectedOption] = (),
    ) -> bool:
        """Remove the line with this identity. Empty options match only an option-less line."""
        index = self._index_of(line_identity(item_id, options))
        if index is None:
            return False
        del self._lines[index]
        await self._persist()
        return True

    async def update_quantity(
        self,
        item_id: str,
        quantity: int,
        options: Iterable[SelectedOption] = (),
    ) -> bool:
        """
        Set the quantity of the line with this identity.

        Note: quantity below 1 is rejected, not treated as removal.
        """
        if quantity < 1:
            raise ValueError("quantity must be at least 1; use remove_line()")
        index = self._index_of(line_identity(item_id, options))
        if index is None:
            return False
        self._lines[index] = self._lines[index].with_quantity(quantity)
        await self._persist()
        return True

    async def clear(self) -> None:
        """
        Empty the cart and purge the persisted mirror.

        Note: Before load() completes only memory is cleared; the
        persisted cart is not ours to purge yet.
        """
        self._lines = []
        self._last_add.clear()
        if not self._loaded:
            logger.debug("Cart not loaded yet; skipping purge")
            return
        match await self._storage.remove(self._policy.storage_key):
            case Error(err):
                logger.warning("Failed to purge persisted cart: %s", err.message)
            case Ok(_):
                pass

    # ─── Internals ───────────────────────────────────────────────────────────

    def _merge(self, line: CartLine) -> CartLine:
        index = self._index_of(line.identity)
        if index is None:
            self._lines.append(line)
            return line
        current = self._lines[index]
        merged = current.with_quantity(current.quantity + line.quantity)
        self._lines[index] = merged
        return merged

    def _index_of(self, identity: LineIdentity) -> int | None:
        return self._index_in(self._lines, identity)

    @staticmethod
    def _index_in(lines: list[CartLine], identity: LineIdentity) -> int | None:
        for i, line in enumerate(lines):
            if line.identity == identity:
                return i
        return None

    async def _persist(self) -> None:
        if not self._loaded:
            logger.debug("Cart not loaded yet; skipping write-through")
            return
        payload = json.dumps([line.to_mapping() for line in self._lines])
        match await self._storage.set(self._policy.storage_key, payload):
            case Error(err):
                logger.warning("Cart write-through failed: %s", err.message)
            case Ok(_):
                pass


__all__ = ("CartStore",)
