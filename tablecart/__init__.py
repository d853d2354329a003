"""
tablecart — cart pricing and guarded order submission for storefronts.

    from tablecart import pricing as P   # Unit price resolution
    from tablecart import cart as Ct     # Cart store with write-through
    from tablecart import guard as Gd    # Submission guard
    from tablecart import orders as O    # Payload + order service
    from tablecart import storage as S   # Storage backends
"""

from tablecart import pricing
from tablecart import cart
from tablecart import guard
from tablecart import orders
from tablecart import storage
from tablecart._errors import (
    CheckoutErrorKind,
    CheckoutError,
    CheckoutErrors,
)
from tablecart._types import (
    Money,
    Clock,
    SystemClock,
    ManualClock,
)
from tablecart.context import CartContext

__version__ = "0.1.0"

__all__ = (
    "pricing",
    "cart",
    "guard",
    "orders",
    "storage",
    "CheckoutErrorKind",
    "CheckoutError",
    "CheckoutErrors",
    "Money",
    "Clock",
    "SystemClock",
    "ManualClock",
    "CartContext",
)
