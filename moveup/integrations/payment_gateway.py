"""Payment gateway adapters used by the booking lifecycle service."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
from typing import Any, List, Optional, Protocol, Set, Tuple

from pydantic import SecretStr
import stripe

from ..constants.payment_status import map_stripe_status
from ..core.config import Settings
from ..core.exceptions import PaymentGatewayError
from ..models.booking import PaymentStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of a gateway call. ``reference`` is the provider's id for the operation."""

    success: bool
    reference: Optional[str] = None
    status: Optional[PaymentStatus] = None
    failure_reason: Optional[str] = None


class PaymentGateway(Protocol):
    """Capability the lifecycle service needs from a payment provider."""

    def authorize(self, reference: str, amount_cents: int, currency: str) -> GatewayResult:
        ...

    def capture(self, reference: str, amount_cents: int) -> GatewayResult:
        ...

    def refund(self, reference: str, amount_cents: int, reason: Optional[str] = None) -> GatewayResult:
        ...

    def void(self, reference: str) -> GatewayResult:
        ...


def _field(obj: Any, name: str) -> Any:
    value = getattr(obj, name, None)
    if value is None and hasattr(obj, "get"):
        value = obj.get(name)
    return value


class StripePaymentGateway:
    """
    Manual-capture PaymentIntents.

    The client confirms a PaymentIntent with ``capture_method=manual``; its id
    is the booking's payment reference. Authorizing checks that the intent is
    holding enough funds, capturing and voiding act on the intent, refunds are
    issued against it.
    """

    def __init__(self, *, api_key: str | SecretStr) -> None:
        secret_value = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        if not secret_value:
            raise ValueError("Stripe secret key must be provided")
        stripe.api_key = secret_value

    def authorize(self, reference: str, amount_cents: int, currency: str) -> GatewayResult:
        try:
            intent = stripe.PaymentIntent.retrieve(reference)
        except stripe.StripeError as e:
            logger.error(f"Stripe error retrieving payment intent {reference}: {str(e)}")
            raise PaymentGatewayError("authorize", str(e)) from e

        status = map_stripe_status(_field(intent, "status"))
        capturable = int(_field(intent, "amount_capturable") or 0)
        intent_currency = str(_field(intent, "currency") or currency).upper()
        if status != PaymentStatus.AUTHORIZED:
            last_error = _field(intent, "last_payment_error")
            reason = _field(last_error, "message") if last_error else None
            return GatewayResult(
                success=False,
                reference=reference,
                status=status,
                failure_reason=reason or f"payment intent is {_field(intent, 'status')}",
            )
        if capturable < amount_cents or intent_currency != currency.upper():
            return GatewayResult(
                success=False,
                reference=reference,
                status=PaymentStatus.FAILED,
                failure_reason="authorized amount does not cover the lesson price",
            )
        return GatewayResult(success=True, reference=reference, status=PaymentStatus.AUTHORIZED)

    def capture(self, reference: str, amount_cents: int) -> GatewayResult:
        try:
            intent = stripe.PaymentIntent.capture(
                reference,
                amount_to_capture=amount_cents,
                idempotency_key=f"capture:{reference}",
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error capturing payment intent {reference}: {str(e)}")
            raise PaymentGatewayError("capture", str(e)) from e

        transfer_reference = _field(intent, "latest_charge") or _field(intent, "id")
        return GatewayResult(
            success=map_stripe_status(_field(intent, "status")) == PaymentStatus.CAPTURED,
            reference=transfer_reference,
            status=map_stripe_status(_field(intent, "status")),
        )

    def refund(self, reference: str, amount_cents: int, reason: Optional[str] = None) -> GatewayResult:
        try:
            refund = stripe.Refund.create(
                payment_intent=reference,
                amount=amount_cents,
                reason="requested_by_customer",
                metadata={"cancellation_reason": (reason or "")[:500]},
                idempotency_key=f"refund:{reference}",
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error refunding payment intent {reference}: {str(e)}")
            raise PaymentGatewayError("refund", str(e)) from e

        refund_status = _field(refund, "status")
        success = refund_status in ("succeeded", "pending")
        return GatewayResult(
            success=success,
            reference=_field(refund, "id"),
            status=PaymentStatus.REFUNDED if success else PaymentStatus.CAPTURED,
            failure_reason=None if success else _field(refund, "failure_reason"),
        )

    def void(self, reference: str) -> GatewayResult:
        try:
            intent = stripe.PaymentIntent.cancel(
                reference,
                cancellation_reason="requested_by_customer",
                idempotency_key=f"cancel:{reference}",
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error cancelling payment intent {reference}: {str(e)}")
            raise PaymentGatewayError("void", str(e)) from e

        status = map_stripe_status(_field(intent, "status"))
        return GatewayResult(
            success=status == PaymentStatus.VOIDED, reference=reference, status=status
        )


class FakePaymentGateway:
    """
    Deterministic in-process gateway.

    Every call is appended to ``calls``. References in ``decline_references``
    (or every reference when ``decline_all`` is set) are declined at
    authorization; operations named in ``fail_operations`` raise
    ``PaymentGatewayError``.
    """

    def __init__(
        self,
        *,
        decline_all: bool = False,
        decline_references: Optional[Set[str]] = None,
        fail_operations: Optional[Set[str]] = None,
    ) -> None:
        self.decline_all = decline_all
        self.decline_references: Set[str] = set(decline_references or ())
        self.fail_operations: Set[str] = set(fail_operations or ())
        self.calls: List[Tuple[Any, ...]] = []
        self._sequence = 0
        self._sequence_lock = threading.Lock()

    def _next_id(self, prefix: str) -> str:
        with self._sequence_lock:
            self._sequence += 1
            sequence = self._sequence
        return f"{prefix}_fake_{sequence:04d}"

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_operations:
            raise PaymentGatewayError(operation, "simulated provider outage")

    def authorize(self, reference: str, amount_cents: int, currency: str) -> GatewayResult:
        self.calls.append(("authorize", reference, amount_cents, currency))
        self._maybe_fail("authorize")
        if self.decline_all or reference in self.decline_references:
            return GatewayResult(
                success=False,
                reference=reference,
                status=PaymentStatus.FAILED,
                failure_reason="Your card was declined.",
            )
        return GatewayResult(success=True, reference=reference, status=PaymentStatus.AUTHORIZED)

    def capture(self, reference: str, amount_cents: int) -> GatewayResult:
        self.calls.append(("capture", reference, amount_cents))
        self._maybe_fail("capture")
        return GatewayResult(
            success=True, reference=self._next_id("ch"), status=PaymentStatus.CAPTURED
        )

    def refund(self, reference: str, amount_cents: int, reason: Optional[str] = None) -> GatewayResult:
        self.calls.append(("refund", reference, amount_cents, reason))
        self._maybe_fail("refund")
        return GatewayResult(
            success=True, reference=self._next_id("re"), status=PaymentStatus.REFUNDED
        )

    def void(self, reference: str) -> GatewayResult:
        self.calls.append(("void", reference))
        self._maybe_fail("void")
        return GatewayResult(success=True, reference=reference, status=PaymentStatus.VOIDED)

    def operations(self) -> List[str]:
        return [call[0] for call in self.calls]


def build_payment_gateway(config: Settings) -> PaymentGateway:
    """Pick the gateway named by configuration."""
    if config.payment_gateway == "stripe":
        assert config.stripe_secret_key is not None
        return StripePaymentGateway(api_key=config.stripe_secret_key)
    return FakePaymentGateway()
