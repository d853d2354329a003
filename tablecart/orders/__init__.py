"""
Orders — payload building and remote submission.

    from tablecart import orders as O

    ctx = O.SubmissionContext(
        venue=O.VenueContext("r1", "b1", table_id="t4"),
        tax=O.TaxContext.from_settings(settings),
        customer=O.CustomerInfo(name="Ada", phone="555-123-4567"),
        order_type=O.order_type_from("dineIn"),
        payment_method=O.PaymentMethod.CARD,
    )
    submitter = O.OrderSubmitter(O.HttpOrderService("https://api.example.com"))
    result = await submitter.submit(cart.lines, ctx, idempotency_key=digest)

Failure classification:

    malformed line / customer → VALIDATION (nothing sent)
    no response               → TRANSPORT
    4xx/5xx                   → SERVER(status_code)
    4xx + _duplicateRequest   → RATE_LIMITED(waitTime)
"""

from tablecart.orders._types import (
    OrderType,
    order_type_from,
    PaymentMethod,
    VenueContext,
    CustomerInfo,
    normalize_country_code,
    DEFAULT_TAX_RATE,
    TaxContext,
    WireLine,
    OrderDraft,
    PlacedOrder,
)
from tablecart.orders._payload import (
    OBJECT_ID,
    SubmissionContext,
    describe_options,
    validate_customer,
    build_draft,
)
from tablecart.orders._service import (
    OrderServiceError,
    TransportFailure,
    ServerRejected,
    OrderService,
    Notifier,
    FunctionalOrderService,
    service_from,
    HttpOrderService,
)
from tablecart.orders._submit import DUPLICATE_MARKER, OrderSubmitter

__all__ = (
    # Types
    "OrderType",
    "order_type_from",
    "PaymentMethod",
    "VenueContext",
    "CustomerInfo",
    "normalize_country_code",
    "DEFAULT_TAX_RATE",
    "TaxContext",
    "WireLine",
    "OrderDraft",
    "PlacedOrder",
    # Payload
    "OBJECT_ID",
    "SubmissionContext",
    "describe_options",
    "validate_customer",
    "build_draft",
    # Service
    "OrderServiceError",
    "TransportFailure",
    "ServerRejected",
    "OrderService",
    "Notifier",
    "FunctionalOrderService",
    "service_from",
    "HttpOrderService",
    # Submitter
    "DUPLICATE_MARKER",
    "OrderSubmitter",
)
