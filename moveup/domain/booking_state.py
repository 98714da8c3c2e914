"""
Booking status machine.

Booking status and payment status change together; every function here
checks the requested edge against the transition tables, verifies that the
resulting (status, payment_status) pair is consistent, then stamps the
booking. Anything else raises ``InvalidTransition``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import Dict, FrozenSet, Optional

from ..core.exceptions import InvalidTransition, NotAuthorized
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..models.types import ensure_utc
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {
            BookingStatus.COMPLETED,
            BookingStatus.CANCELLED,
            BookingStatus.NO_SHOW,
            BookingStatus.REFUNDED,
        }
    ),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
    BookingStatus.REFUNDED: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.AUTHORIZED, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.AUTHORIZED, PaymentStatus.FAILED}),
    PaymentStatus.AUTHORIZED: frozenset({PaymentStatus.CAPTURED, PaymentStatus.VOIDED}),
    PaymentStatus.CAPTURED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
    PaymentStatus.VOIDED: frozenset(),
}

CONSISTENT_PAYMENT_STATUSES: Dict[BookingStatus, FrozenSet[PaymentStatus]] = {
    BookingStatus.PENDING: frozenset({PaymentStatus.PENDING, PaymentStatus.FAILED}),
    BookingStatus.CONFIRMED: frozenset({PaymentStatus.AUTHORIZED, PaymentStatus.CAPTURED}),
    BookingStatus.COMPLETED: frozenset({PaymentStatus.CAPTURED}),
    BookingStatus.CANCELLED: frozenset(
        {PaymentStatus.PENDING, PaymentStatus.FAILED, PaymentStatus.VOIDED}
    ),
    BookingStatus.NO_SHOW: frozenset({PaymentStatus.AUTHORIZED, PaymentStatus.CAPTURED}),
    BookingStatus.REFUNDED: frozenset({PaymentStatus.REFUNDED}),
}

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def is_terminal(status: BookingStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(from_status: BookingStatus, to_status: BookingStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def is_consistent(status: BookingStatus, payment_status: PaymentStatus) -> bool:
    return payment_status in CONSISTENT_PAYMENT_STATUSES[status]


def assert_consistent(booking: Booking) -> None:
    """Integrity check; a mismatch here means something bypassed this module."""
    if not is_consistent(booking.booking_status, booking.payment_state):
        raise AssertionError(
            f"Booking {booking.id} has inconsistent state "
            f"{booking.status}/{booking.payment_status}"
        )


def _apply(
    booking: Booking,
    *,
    now: datetime,
    to_status: Optional[BookingStatus] = None,
    to_payment: Optional[PaymentStatus] = None,
    reason: Optional[str] = None,
) -> None:
    current = booking.booking_status
    current_payment = booking.payment_state
    target = to_status or current
    target_payment = to_payment or current_payment

    if to_status is not None and not can_transition(current, target):
        raise InvalidTransition(current, target, reason)
    if to_payment is not None and target_payment not in PAYMENT_TRANSITIONS[current_payment]:
        raise InvalidTransition(current_payment, target_payment, reason or "payment status")
    if not is_consistent(target, target_payment):
        raise InvalidTransition(
            current, target, f"payment status '{target_payment.value}' is not compatible"
        )

    booking.status = target.value
    booking.payment_status = target_payment.value
    booking.updated_at = now

    if target != current:
        prometheus_metrics.record_booking_transition(current.value, target.value)
        logger.info(
            "booking_transition",
            extra={
                "booking_id": booking.id,
                "from": current.value,
                "to": target.value,
                "payment_status": target_payment.value,
            },
        )


def confirm(booking: Booking, *, now: datetime, payment_reference: str) -> None:
    """pending → confirmed while the payment moves to authorized."""
    _apply(
        booking,
        now=now,
        to_status=BookingStatus.CONFIRMED,
        to_payment=PaymentStatus.AUTHORIZED,
    )
    booking.payment_reference = payment_reference
    booking.confirmed_at = now


def record_payment_failure(booking: Booking, *, now: datetime) -> None:
    """Authorization declined; the booking stays pending and may be retried."""
    if booking.booking_status != BookingStatus.PENDING:
        raise InvalidTransition(booking.booking_status, BookingStatus.PENDING, "payment failure")
    _apply(booking, now=now, to_payment=PaymentStatus.FAILED)


def record_capture(booking: Booking, *, now: datetime, transfer_reference: Optional[str]) -> None:
    """authorized → captured; the booking stays confirmed."""
    if booking.payment_state != PaymentStatus.AUTHORIZED:
        raise NotAuthorized(booking.id, booking.payment_state)
    _apply(booking, now=now, to_payment=PaymentStatus.CAPTURED)
    booking.transfer_reference = transfer_reference


def stamp_validation(booking: Booking, *, now: datetime, validated_by: Optional[str]) -> None:
    booking.validated_at = now
    booking.validated_by = validated_by
    booking.updated_at = now


def complete(booking: Booking, *, now: datetime, early_window: timedelta = timedelta(0)) -> None:
    """confirmed → completed; needs a QR validation at/after start and a captured payment."""
    validated_at = ensure_utc(booking.validated_at)
    if validated_at is None:
        raise InvalidTransition(booking.booking_status, BookingStatus.COMPLETED, "not validated")
    if validated_at < booking.scheduled_at_utc - early_window:
        raise InvalidTransition(
            booking.booking_status, BookingStatus.COMPLETED, "validated before the lesson start"
        )
    if booking.payment_state != PaymentStatus.CAPTURED:
        raise InvalidTransition(
            booking.booking_status, BookingStatus.COMPLETED, "payment not captured"
        )
    _apply(booking, now=now, to_status=BookingStatus.COMPLETED)
    booking.completed_at = now


def cancel(booking: Booking, *, now: datetime, reason: Optional[str]) -> None:
    """
    pending|confirmed → cancelled for bookings whose payment was never captured.

    A held authorization is released (voided). Captured bookings must go
    through :func:`refund` instead.
    """
    payment = booking.payment_state
    if payment == PaymentStatus.CAPTURED:
        raise InvalidTransition(
            booking.booking_status, BookingStatus.CANCELLED, "payment already captured"
        )
    to_payment = PaymentStatus.VOIDED if payment == PaymentStatus.AUTHORIZED else None
    _apply(booking, now=now, to_status=BookingStatus.CANCELLED, to_payment=to_payment)
    booking.cancellation_reason = reason
    booking.cancelled_at = now


def refund(
    booking: Booking, *, now: datetime, reason: Optional[str], refund_reference: Optional[str]
) -> None:
    """confirmed (captured) → refunded, after the refund transaction has settled."""
    _apply(
        booking,
        now=now,
        to_status=BookingStatus.REFUNDED,
        to_payment=PaymentStatus.REFUNDED,
    )
    booking.refund_reference = refund_reference
    booking.cancellation_reason = reason
    booking.cancelled_at = now


def mark_no_show(booking: Booking, *, now: datetime) -> None:
    """confirmed → no_show once the start time has passed without validation."""
    if booking.is_validated:
        raise InvalidTransition(booking.booking_status, BookingStatus.NO_SHOW, "lesson validated")
    if ensure_utc(now) < booking.scheduled_at_utc:
        raise InvalidTransition(
            booking.booking_status, BookingStatus.NO_SHOW, "lesson has not started"
        )
    _apply(booking, now=now, to_status=BookingStatus.NO_SHOW)
