"""External service integrations."""

from .payment_gateway import (
    FakePaymentGateway,
    GatewayResult,
    PaymentGateway,
    StripePaymentGateway,
    build_payment_gateway,
)

__all__ = [
    "FakePaymentGateway",
    "GatewayResult",
    "PaymentGateway",
    "StripePaymentGateway",
    "build_payment_gateway",
]
