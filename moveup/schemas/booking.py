"""Booking request/response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from ..constants.booking_display import BOOKING_STATUS_DISPLAY, PAYMENT_STATUS_DISPLAY
from ..core.constants import MAX_NOTES_LENGTH, MAX_REASON_LENGTH
from ..domain.fees import from_cents
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ._strict_base import StrictModel, StrictRequestModel


class BookingCreate(StrictRequestModel):
    """Reserve a lesson; the price is in currency units (e.g. 50.00)."""

    lesson_id: str = Field(..., min_length=1, max_length=64)
    instructor_id: str = Field(..., min_length=1, max_length=64)
    user_id: str = Field(..., min_length=1, max_length=64)
    scheduled_at: datetime = Field(..., description="Lesson start; naive values are UTC")
    total_amount: Decimal = Field(..., description="Gross lesson price")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)


class AuthorizePaymentRequest(StrictRequestModel):
    payment_reference: str = Field(..., min_length=1, max_length=255)


class ValidateBookingRequest(StrictRequestModel):
    """QR scan submitted by the instructor's device."""

    qr_code_data: str = Field(..., min_length=1, max_length=512)
    scanned_by: Optional[str] = Field(None, max_length=64)


class CancelBookingRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


class BookingResponse(StrictModel):
    id: str
    lesson_id: str
    instructor_id: str
    user_id: str
    scheduled_at: datetime
    status: BookingStatus
    status_label: str
    payment_status: PaymentStatus
    payment_status_label: str
    total_amount: Decimal
    total_amount_cents: int
    currency: str
    notes: Optional[str] = None
    validated_at: Optional[datetime] = None
    validated_by: Optional[str] = None
    payment_reference: Optional[str] = None
    transfer_reference: Optional[str] = None
    refund_reference: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        status = booking.booking_status
        payment = booking.payment_state
        return cls(
            id=booking.id,
            lesson_id=booking.lesson_id,
            instructor_id=booking.instructor_id,
            user_id=booking.user_id,
            scheduled_at=booking.scheduled_at_utc,
            status=status,
            status_label=BOOKING_STATUS_DISPLAY[status].label,
            payment_status=payment,
            payment_status_label=PAYMENT_STATUS_DISPLAY[payment].label,
            total_amount=from_cents(booking.total_amount_cents),
            total_amount_cents=booking.total_amount_cents,
            currency=booking.currency,
            notes=booking.notes,
            validated_at=booking.validated_at,
            validated_by=booking.validated_by,
            payment_reference=booking.payment_reference,
            transfer_reference=booking.transfer_reference,
            refund_reference=booking.refund_reference,
            cancellation_reason=booking.cancellation_reason,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
            confirmed_at=booking.confirmed_at,
            completed_at=booking.completed_at,
            cancelled_at=booking.cancelled_at,
        )


class QRCodeResponse(StrictModel):
    booking_id: str
    qr_code_data: str
