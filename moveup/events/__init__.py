"""Domain events emitted by the booking lifecycle and wallet ledger."""

from .booking_events import (
    BookingCancelled,
    BookingCompleted,
    BookingCreated,
    BookingEvent,
    BookingEventListener,
    BookingEvents,
    BookingNoShow,
    BookingRefunded,
    LessonValidated,
    PaymentAuthorized,
    PaymentCaptured,
    TransactionSettled,
    dispatch_all,
    register_listener,
    unregister_listener,
)

__all__ = [
    "BookingCancelled",
    "BookingCompleted",
    "BookingCreated",
    "BookingEvent",
    "BookingEventListener",
    "BookingEvents",
    "BookingNoShow",
    "BookingRefunded",
    "LessonValidated",
    "PaymentAuthorized",
    "PaymentCaptured",
    "TransactionSettled",
    "dispatch_all",
    "register_listener",
    "unregister_listener",
]
