"""
Storage — client-side key/value stores.

    from tablecart import storage as S

    durable = S.FileStorage("data/cart.json")
    session = S.MemoryStorage()

    match await durable.get("cart"):
        case Ok(raw): ...
        case Error(err): ...
"""

from tablecart.storage._store import (
    StorageError,
    Storage,
    FunctionalStorage,
    storage_from,
    MemoryStorage,
    FileStorage,
)

__all__ = (
    "StorageError",
    "Storage",
    "FunctionalStorage",
    "storage_from",
    "MemoryStorage",
    "FileStorage",
)
