# moveup/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingLifecycleService.

Endpoints:
    POST / - Create a booking in pending
    GET / - List bookings for a student or an instructor
    GET /{booking_id} - Full booking details
    GET /{booking_id}/qr - Scan token for the lesson
    POST /{booking_id}/authorize - Hold the payment
    POST /{booking_id}/capture - Capture the held payment
    POST /{booking_id}/validate - Validate the lesson by QR scan and complete it
    POST /{booking_id}/cancel - Cancel (void or refund)
    POST /{booking_id}/no-show - Mark the student absent
"""

import asyncio
import logging
from typing import Any, List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.params import Path

from ...api.dependencies import get_booking_lifecycle_service
from ...core.exceptions import DomainException, ValidationException
from ...domain.fees import to_cents
from ...models.booking import BookingStatus
from ...schemas.booking import (
    AuthorizePaymentRequest,
    BookingCreate,
    BookingResponse,
    CancelBookingRequest,
    QRCodeResponse,
    ValidateBookingRequest,
)
from ...services.booking_lifecycle_service import BookingLifecycleService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _booking_id_path() -> Any:
    return Path(
        ...,
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    )


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate = Body(...),
    service: BookingLifecycleService = Depends(get_booking_lifecycle_service),
) -> BookingResponse:
    """Create a booking in ``pending``. Nothing is charged yet."""
    try:
        booking = await asyncio.to_thread(
            service.create_booking,
            lesson_id=payload.lesson_id,
            instructor_id=payload.instructor_id,
            user_id=payload.user_id,
            scheduled_at=payload.scheduled_at,
            gross_amount_cents=to_cents(payload.total_amount),
            notes=payload.notes,
            currency=payload.currency,
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=List[BookingResponse])
async def list_bookings(
    user_id: Optional[str] = Query(None, max_length=64),
    instructor_id: Optional[str] = Query(None, max_length=64),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    service: BookingLifecycleService = Depends(get_booking_lifecycle_service),
) -> List[BookingResponse]:
    """List a student's or an instructor's bookings, soonest first."""
    try:
        if bool(user_id) == bool(instructor_id):
            raise ValidationException(
                "Provide exactly one of user_id or instructor_id", code="INVALID_FILTER"
            )
        if user_id:
            bookings = await asyncio.to_thread(
                service.list_bookings_for_user, user_id, status_filter
            )
        else:
            bookings = await asyncio.to_thread(
                service.list_bookings_for_instructor, instructor_id, status_filter
            )
        return [BookingResponse.from_booking(booking) for booking in bookings]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str = _booking_id_path(),
    service: BookingLifecycleService = Depends(get_booking_lifecycle_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(service.get_booking, booking_id)
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}/qr", response_model=QRCodeResponse)
async def get_booking_qr(
    booking_id: str = _booking_id_path(),
    service: BookingLifecycleService = Depends(get_booking_lifecycle_service),
) -> QRCodeResponse:
    """Token the student shows the instructor at the start of the lesson."""
    try:
        token = await asyncio.to_thread(service.qr_token_for, booking_id)
        return QRCodeResponse(booking_id=booking_id, qr_code_data=token)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/authorize", response_model=BookingResponse)
async def authorize_payment(
    payload: AuthorizePaymentRequest = Body(...),
    booking_id: str = _booking_id_path(),
    service: BookingLifecycleService = Depends(get_booking_lifecycle_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            service.authorize_payment, booking_id, payload.payment_reference
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/capture", response_model=BookingResponse)
async def capture_payment(
    booking_id: str = _booking_id_path(),
    service: BookingLifecycleService = Depends(get_booking_lifecycle_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(service.capture_payment, booking_id)
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/validate", response_model=BookingResponse)
async def validate_booking(
    payload: ValidateBookingRequest = Body(...),
    booking_id: str = _booking_id_path(),
    service: BookingLifecycleService = Depends(get_booking_lifecycle_service),
) -> BookingResponse:
    """Validate the lesson with the scanned QR code; captures and completes the booking."""
    try:
        booking = await asyncio.to_thread(
            service.validate_and_complete,
            booking_id,
            payload.qr_code_data,
            payload.scanned_by,
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    payload: Optional[CancelBookingRequest] = Body(None),
    booking_id: str = _booking_id_path(),
    service: BookingLifecycleService = Depends(get_booking_lifecycle_service),
) -> BookingResponse:
    try:
        reason = payload.reason if payload else None
        booking = await asyncio.to_thread(service.cancel, booking_id, reason)
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/no-show", response_model=BookingResponse)
async def mark_no_show(
    booking_id: str = _booking_id_path(),
    service: BookingLifecycleService = Depends(get_booking_lifecycle_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(service.mark_no_show, booking_id)
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)
