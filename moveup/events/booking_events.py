"""Typed booking and ledger events and their in-process dispatcher."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger("moveup.events.bookings")


class BookingEvent(BaseModel):
    """Base class for lifecycle events. Dispatched only after the change is committed."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    booking_id: str
    occurred_at: datetime


BookingEventListener = Callable[[BookingEvent], None]


class BookingEvents:
    """Registry for booking event listeners."""

    _listeners: List[BookingEventListener] = []

    @classmethod
    def register(cls, listener: BookingEventListener) -> None:
        cls._listeners.append(listener)

    @classmethod
    def unregister(cls, listener: BookingEventListener) -> None:
        cls._listeners = [existing for existing in cls._listeners if existing is not listener]

    @classmethod
    def listeners(cls) -> Sequence[BookingEventListener]:  # pragma: no cover - trivial accessor
        return tuple(cls._listeners)

    @classmethod
    def dispatch(cls, event: BookingEvent) -> None:
        for listener in list(cls._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Booking event listener error: %s", listener)
        logger.info("booking_event=%s payload=%s", event.__class__.__name__, event.model_dump())


class BookingCreated(BookingEvent):
    user_id: str
    instructor_id: str
    scheduled_at: datetime
    amount_cents: int


class PaymentAuthorized(BookingEvent):
    payment_reference: str
    amount_cents: int


class PaymentCaptured(BookingEvent):
    instructor_id: str
    gross_amount_cents: int
    platform_fee_cents: int
    net_amount_cents: int
    transaction_id: str


class LessonValidated(BookingEvent):
    instructor_id: str
    validated_by: Optional[str] = None


class BookingCompleted(BookingEvent):
    instructor_id: str
    user_id: str


class BookingCancelled(BookingEvent):
    reason: Optional[str] = None
    payment_status: str


class BookingRefunded(BookingEvent):
    refund_amount_cents: int
    transaction_id: str
    reason: Optional[str] = None


class BookingNoShow(BookingEvent):
    instructor_id: str
    user_id: str


class TransactionSettled(BookingEvent):
    """Ledger entry completed; ``booking_id`` is empty for payouts and bonuses."""

    transaction_id: str
    wallet_id: str
    transaction_type: str
    amount_cents: int
    balance_cents: int


def register_listener(listener: BookingEventListener) -> None:
    """Register an in-process listener for booking events."""

    BookingEvents.register(listener)


def unregister_listener(listener: BookingEventListener) -> None:
    """Remove a previously registered listener."""

    BookingEvents.unregister(listener)


def dispatch_all(events: Sequence[BookingEvent]) -> None:
    for event in events:
        BookingEvents.dispatch(event)
