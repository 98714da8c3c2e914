# moveup/models/booking.py
"""
Booking model for the MoveUp platform.

A booking is one student's reservation of one lesson with one instructor.
Status and payment status move together through the transitions defined in
``moveup.domain.booking_state``; nothing outside the lifecycle service
assigns them directly.
"""

from datetime import datetime
from enum import Enum
import logging
from typing import Any, Optional

from sqlalchemy import CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..core.constants import DEFAULT_CURRENCY
from ..database import Base
from .types import UTCDateTime, ensure_utc

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Created, payment not yet authorized
    CONFIRMED = "confirmed"  # Payment authorized (funds held)
    COMPLETED = "completed"  # Lesson validated by QR scan
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    REFUNDED = "refunded"  # Captured payment returned to the student


class PaymentStatus(str, Enum):
    """Payment lifecycle statuses for a booking."""

    PENDING = "pending"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    REFUNDED = "refunded"
    FAILED = "failed"
    VOIDED = "voided"  # Authorization released without capture


class Booking(Base):
    """Reservation of a lesson, with its payment state and validation stamp."""

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))

    lesson_id: Mapped[str] = mapped_column(String(64), nullable=False)
    instructor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    scheduled_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookingStatus.PENDING.value, index=True
    )
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )

    total_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # QR validation
    validated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    validated_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Payment provider references
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    transfer_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    refund_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'no_show', 'refunded')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'authorized', 'captured', 'refunded', 'failed', 'voided')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint("total_amount_cents >= 0", name="ck_bookings_amount_non_negative"),
        Index("ix_bookings_instructor_status", "instructor_id", "status"),
    )

    @property
    def booking_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def payment_state(self) -> PaymentStatus:
        return PaymentStatus(self.payment_status)

    @property
    def scheduled_at_utc(self) -> datetime:
        aware = ensure_utc(self.scheduled_at)
        assert aware is not None
        return aware

    @property
    def is_validated(self) -> bool:
        return self.validated_at is not None

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: user={self.user_id}, instructor={self.instructor_id}, "
            f"at={self.scheduled_at}, status={self.status}/{self.payment_status}>"
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain read-only snapshot for consumers outside the lifecycle service."""
        return {
            "id": self.id,
            "lesson_id": self.lesson_id,
            "instructor_id": self.instructor_id,
            "user_id": self.user_id,
            "scheduled_at": self.scheduled_at.isoformat() if self.scheduled_at else None,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_amount_cents": self.total_amount_cents,
            "currency": self.currency,
            "notes": self.notes,
            "validated_at": self.validated_at.isoformat() if self.validated_at else None,
            "payment_reference": self.payment_reference,
            "transfer_reference": self.transfer_reference,
            "refund_reference": self.refund_reference,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
