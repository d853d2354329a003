"""
Cart — lines merged by identity, mirrored to durable storage.

    from tablecart import cart as Ca

    store = Ca.CartStore(S.FileStorage("data/cart.json"))
    await store.load()
    await store.add_line(item, 2, [P.size("L")])

Identity:
    (item_id, options as an unordered multiset of (name, value))
    — at most one line per identity; repeated adds raise the quantity.

Persistence:
    load() ─► loaded ─► every mutation writes the full line array
    (before load completes nothing is written)
"""

from tablecart.cart._types import (
    LineIdentity,
    line_identity,
    CartLine,
    cart_total,
    CartPolicy,
)
from tablecart.cart._store import CartStore

__all__ = (
    "LineIdentity",
    "line_identity",
    "CartLine",
    "cart_total",
    "CartPolicy",
    "CartStore",
)
