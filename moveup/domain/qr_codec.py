"""
QR scan tokens for lesson validation.

Format: ``MOVEUP:BOOKING:{booking_id}:TRAINER:{instructor_id}``. Ids may not
contain ``:``; there is no escaping. Everything here is side-effect free.
"""

from __future__ import annotations

from typing import Any, NamedTuple

from ..core.constants import (
    QR_TOKEN_BOOKING_TAG,
    QR_TOKEN_BRAND,
    QR_TOKEN_FIELD_COUNT,
    QR_TOKEN_SEPARATOR,
    QR_TOKEN_TRAINER_TAG,
)
from ..core.exceptions import AlreadyValidated, BookingMismatch, MalformedToken, NotEligible
from ..models.booking import Booking, BookingStatus, PaymentStatus

TOKEN_PREFIX = f"{QR_TOKEN_BRAND}{QR_TOKEN_SEPARATOR}{QR_TOKEN_BOOKING_TAG}{QR_TOKEN_SEPARATOR}"


class DecodedToken(NamedTuple):
    booking_id: str
    instructor_id: str


def encode_ids(booking_id: str, instructor_id: str) -> str:
    for value in (booking_id, instructor_id):
        if not value or QR_TOKEN_SEPARATOR in value:
            raise MalformedToken(value)
    return QR_TOKEN_SEPARATOR.join(
        (QR_TOKEN_BRAND, QR_TOKEN_BOOKING_TAG, booking_id, QR_TOKEN_TRAINER_TAG, instructor_id)
    )


def encode(booking: Booking) -> str:
    """Build the scan token for a booking."""
    return encode_ids(booking.id, booking.instructor_id)


def decode(token: Any) -> DecodedToken:
    """Parse a scanned token into ``(booking_id, instructor_id)``."""
    if not isinstance(token, str):
        raise MalformedToken(token)
    parts = token.split(QR_TOKEN_SEPARATOR)
    if len(parts) != QR_TOKEN_FIELD_COUNT:
        raise MalformedToken(token)
    brand, booking_tag, booking_id, trainer_tag, instructor_id = parts
    if (
        brand != QR_TOKEN_BRAND
        or booking_tag != QR_TOKEN_BOOKING_TAG
        or trainer_tag != QR_TOKEN_TRAINER_TAG
    ):
        raise MalformedToken(token)
    return DecodedToken(booking_id, instructor_id)


def is_qr_token(data: Any) -> bool:
    """Cheap prefix check used by scanners before attempting a full decode."""
    return isinstance(data, str) and data.startswith(TOKEN_PREFIX)


def validate(booking: Booking, scanned_token: str) -> DecodedToken:
    """
    Check that a scanned token may validate ``booking``.

    Raises, in this order: MalformedToken, BookingMismatch, AlreadyValidated,
    NotEligible. Stamping the validation and advancing the booking is left to
    the caller.
    """
    decoded = decode(scanned_token)
    if decoded.booking_id != booking.id:
        raise BookingMismatch(booking.id, decoded.booking_id)
    if decoded.instructor_id != booking.instructor_id:
        raise BookingMismatch(booking.id, decoded.booking_id)
    if booking.validated_at is not None:
        raise AlreadyValidated(booking.id, booking.validated_at)
    if (
        booking.booking_status != BookingStatus.CONFIRMED
        or booking.payment_state != PaymentStatus.AUTHORIZED
    ):
        raise NotEligible(
            booking.id,
            f"booking is {booking.status} with payment {booking.payment_status}",
        )
    return decoded
