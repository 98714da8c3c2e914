# moveup/services/booking_lifecycle_service.py
"""
Booking Lifecycle Service for MoveUp

Coordinates a booking from creation to settlement:

    create -> authorize (funds held) -> validate by QR scan -> capture -> complete

plus cancellation (void or refund) and no-show marking. Each operation runs
under the booking's entity lock and commits once; ledger writes happen in
the same database transaction through ``WalletLedgerService``, with the
wallet lock taken after the booking lock and held until that commit.
Domain errors are raised unchanged to the caller.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.constants import DEFAULT_CURRENCY, MAX_NOTES_LENGTH, MAX_REASON_LENGTH
from ..core.entity_lock import EntityLockRegistry, wallet_lock_key
from ..core.exceptions import (
    BookingNotFound,
    InvalidAmount,
    InvalidSchedule,
    InvalidTransition,
    NotAuthorized,
    NotEligible,
    PaymentDeclined,
    PaymentGatewayError,
    ValidationException,
)
from ..core.timezone_utils import Clock
from ..core.ulid_helper import generate_ulid
from ..domain import booking_state, qr_codec
from ..domain.fees import DEFAULT_FEE_SCHEDULE, FeeSchedule, calculate_fee
from ..events.booking_events import (
    BookingCancelled,
    BookingCompleted,
    BookingCreated,
    BookingNoShow,
    BookingRefunded,
    LessonValidated,
    PaymentAuthorized,
    PaymentCaptured,
)
from ..integrations.payment_gateway import PaymentGateway
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..models.types import ensure_utc
from ..models.wallet import TransactionType, WalletTransaction
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .wallet_ledger_service import LedgerEntry, WalletLedgerService

logger = logging.getLogger(__name__)


class BookingLifecycleService(BaseService):
    """Owns every booking mutation and the ledger entries they produce."""

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        ledger: WalletLedgerService,
        locks: EntityLockRegistry,
        *,
        fee_schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
        clock: Optional[Clock] = None,
        qr_early_window: timedelta = timedelta(0),
        currency: str = DEFAULT_CURRENCY,
    ):
        super().__init__(db, clock)
        if ledger.db is not db:
            raise ValueError("ledger must share the lifecycle service's session")
        self.gateway = gateway
        self.ledger = ledger
        self.locks = locks
        self.fee_schedule = fee_schedule
        self.qr_early_window = qr_early_window
        self.currency = currency
        self.booking_repository: BookingRepository = (
            RepositoryFactory.create_booking_repository(db)
        )

    # Queries

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    def list_bookings_for_user(
        self, user_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        return self.booking_repository.get_student_bookings(user_id, status=status)

    def list_bookings_for_instructor(
        self, instructor_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        return self.booking_repository.get_instructor_bookings(instructor_id, status=status)

    def qr_token_for(self, booking_id: str) -> str:
        """Scan token the student shows at the start of the lesson."""
        return qr_codec.encode(self.get_booking(booking_id))

    # Operations

    @BaseService.measure_operation("booking.create")
    def create_booking(
        self,
        *,
        lesson_id: str,
        instructor_id: str,
        user_id: str,
        scheduled_at: datetime,
        gross_amount_cents: int,
        notes: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Booking:
        """
        Create a booking in ``pending``. No money moves and no ledger entry is written.

        Raises:
            InvalidAmount: negative or non-integer amount
            InvalidSchedule: ``scheduled_at`` is in the past (naive values are UTC)
        """
        for name, value in (
            ("lesson_id", lesson_id),
            ("instructor_id", instructor_id),
            ("user_id", user_id),
        ):
            if not value or not value.strip():
                raise ValidationException(f"{name} is required", code="MISSING_FIELD")
        if isinstance(gross_amount_cents, bool) or not isinstance(gross_amount_cents, int):
            raise InvalidAmount(gross_amount_cents)
        if gross_amount_cents < 0:
            raise InvalidAmount(gross_amount_cents)
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationException(
                f"Notes cannot exceed {MAX_NOTES_LENGTH} characters", code="NOTES_TOO_LONG"
            )

        now = self.now()
        scheduled = ensure_utc(scheduled_at)
        assert scheduled is not None
        if scheduled < now:
            raise InvalidSchedule(scheduled, now)

        booking_id = generate_ulid()
        with self.locks.booking(booking_id):
            with self.transaction():
                booking = self.booking_repository.create(
                    id=booking_id,
                    lesson_id=lesson_id,
                    instructor_id=instructor_id,
                    user_id=user_id,
                    scheduled_at=scheduled,
                    status=BookingStatus.PENDING.value,
                    payment_status=PaymentStatus.PENDING.value,
                    total_amount_cents=gross_amount_cents,
                    currency=(currency or self.currency).upper(),
                    notes=notes,
                    created_at=now,
                    updated_at=now,
                )
                self.publish(
                    BookingCreated(
                        booking_id=booking.id,
                        occurred_at=now,
                        user_id=user_id,
                        instructor_id=instructor_id,
                        scheduled_at=scheduled,
                        amount_cents=gross_amount_cents,
                    )
                )
                self.log_operation(
                    "create_booking", booking_id=booking.id, instructor_id=instructor_id
                )
        return booking

    @BaseService.measure_operation("booking.authorize_payment")
    def authorize_payment(self, booking_id: str, payment_reference: str) -> Booking:
        """
        Hold the lesson price on the student's payment method.

        On success the booking is ``confirmed``/``authorized``. A decline is
        recorded as ``payment_status=failed`` (the booking stays ``pending``
        and may be retried) before ``PaymentDeclined`` is raised.
        """
        if not payment_reference or not payment_reference.strip():
            raise ValidationException(
                "payment_reference is required", code="MISSING_PAYMENT_REFERENCE"
            )

        decline_reason: Optional[str] = None
        declined = False
        with self.locks.booking(booking_id):
            with self.transaction():
                booking = self._get_for_update(booking_id)
                if not booking_state.can_transition(
                    booking.booking_status, BookingStatus.CONFIRMED
                ):
                    raise InvalidTransition(booking.booking_status, BookingStatus.CONFIRMED)

                result = self.gateway.authorize(
                    payment_reference, booking.total_amount_cents, booking.currency
                )
                now = self.now()
                if not result.success:
                    booking_state.record_payment_failure(booking, now=now)
                    booking.payment_reference = payment_reference
                    declined = True
                    decline_reason = result.failure_reason
                    logger.info(
                        "payment_declined",
                        extra={"booking_id": booking_id, "reason": decline_reason},
                    )
                else:
                    booking_state.confirm(booking, now=now, payment_reference=payment_reference)
                    self.publish(
                        PaymentAuthorized(
                            booking_id=booking.id,
                            occurred_at=now,
                            payment_reference=payment_reference,
                            amount_cents=booking.total_amount_cents,
                        )
                    )
                self.booking_repository.flush()

        if declined:
            raise PaymentDeclined(booking_id, decline_reason)
        return booking

    @BaseService.measure_operation("booking.capture_payment")
    def capture_payment(self, booking_id: str) -> Booking:
        """
        Capture the held payment and credit the instructor's net to their wallet.

        Raises:
            NotAuthorized: payment is not currently ``authorized``
        """
        with self.locks.booking(booking_id):
            with self.transaction():
                booking = self._get_for_update(booking_id)
                self._capture(booking, self.now())
        return booking

    @BaseService.measure_operation("booking.validate_and_complete")
    def validate_and_complete(
        self, booking_id: str, scanned_token: str, scanned_by: Optional[str] = None
    ) -> Booking:
        """
        Validate the lesson with a QR scan, capture the payment and complete.

        Scans are accepted from ``scheduled_at`` minus the configured early
        window. Everything happens in one transaction: if the capture fails
        the validation stamp is rolled back too.
        """
        with self.locks.booking(booking_id):
            with self.transaction():
                booking = self._get_for_update(booking_id)
                qr_codec.validate(booking, scanned_token)

                now = self.now()
                if now < booking.scheduled_at_utc - self.qr_early_window:
                    raise NotEligible(booking.id, "the lesson has not started yet")

                booking_state.stamp_validation(booking, now=now, validated_by=scanned_by)
                self.publish(
                    LessonValidated(
                        booking_id=booking.id,
                        occurred_at=now,
                        instructor_id=booking.instructor_id,
                        validated_by=scanned_by,
                    )
                )

                self._capture(booking, now)
                booking_state.complete(booking, now=now, early_window=self.qr_early_window)
                self.booking_repository.flush()
                self.publish(
                    BookingCompleted(
                        booking_id=booking.id,
                        occurred_at=now,
                        instructor_id=booking.instructor_id,
                        user_id=booking.user_id,
                    )
                )
        return booking

    @BaseService.measure_operation("booking.cancel")
    def cancel(self, booking_id: str, reason: Optional[str] = None) -> Booking:
        """
        Cancel a booking that has not reached a terminal status.

        - captured: refund at the gateway, debit the credited net from the
          wallet, booking becomes ``refunded``/``refunded``
        - authorized: release the hold, booking becomes ``cancelled``/``voided``
        - otherwise: booking becomes ``cancelled``
        """
        if reason is not None and len(reason) > MAX_REASON_LENGTH:
            raise ValidationException(
                f"Reason cannot exceed {MAX_REASON_LENGTH} characters", code="REASON_TOO_LONG"
            )

        with self.locks.booking(booking_id):
            with self.transaction():
                booking = self._get_for_update(booking_id)
                if booking_state.is_terminal(booking.booking_status):
                    raise InvalidTransition(booking.booking_status, BookingStatus.CANCELLED)

                now = self.now()
                payment = booking.payment_state
                if payment == PaymentStatus.CAPTURED:
                    self._refund(booking, now, reason)
                else:
                    if payment == PaymentStatus.AUTHORIZED:
                        result = self.gateway.void(booking.payment_reference or "")
                        if not result.success:
                            raise PaymentGatewayError(
                                "void", result.failure_reason or "authorization was not released"
                            )
                    booking_state.cancel(booking, now=now, reason=reason)
                    self.publish(
                        BookingCancelled(
                            booking_id=booking.id,
                            occurred_at=now,
                            reason=reason,
                            payment_status=booking.payment_status,
                        )
                    )
                self.booking_repository.flush()
                self.log_operation(
                    "cancel_booking", booking_id=booking.id, status=booking.status
                )
        return booking

    @BaseService.measure_operation("booking.mark_no_show")
    def mark_no_show(self, booking_id: str) -> Booking:
        """Close a confirmed booking whose lesson started without a QR scan."""
        with self.locks.booking(booking_id):
            with self.transaction():
                booking = self._get_for_update(booking_id)
                now = self.now()
                booking_state.mark_no_show(booking, now=now)
                self.booking_repository.flush()
                self.publish(
                    BookingNoShow(
                        booking_id=booking.id,
                        occurred_at=now,
                        instructor_id=booking.instructor_id,
                        user_id=booking.user_id,
                    )
                )
        return booking

    # Helpers

    def _get_for_update(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_for_update(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    def _capture(self, booking: Booking, now: datetime) -> WalletTransaction:
        if booking.payment_state != PaymentStatus.AUTHORIZED:
            raise NotAuthorized(booking.id, booking.payment_state)
        if booking.booking_status != BookingStatus.CONFIRMED:
            raise InvalidTransition(booking.booking_status, BookingStatus.CONFIRMED, "capture")

        # Lock order is booking, then wallet; both stay held until the outer commit
        wallet = self.ledger.get_or_create_wallet(booking.instructor_id)
        self.hold_until_commit(self.locks, wallet_lock_key(wallet.id))

        result = self.gateway.capture(booking.payment_reference or "", booking.total_amount_cents)
        if not result.success:
            raise PaymentGatewayError(
                "capture", result.failure_reason or "capture was not completed"
            )
        self.record_external_effect(
            "capture",
            result.reference,
            booking_id=booking.id,
            amount_cents=booking.total_amount_cents,
        )

        breakdown = calculate_fee(booking.total_amount_cents, self.fee_schedule)
        txn = self.ledger.append(
            wallet.id,
            LedgerEntry(
                type=TransactionType.LESSON_PAYMENT,
                amount_cents=breakdown.net_amount_cents,
                currency=booking.currency,
                gross_amount_cents=breakdown.gross_amount_cents,
                platform_fee_cents=breakdown.platform_fee_cents,
                net_amount_cents=breakdown.net_amount_cents,
                description="Pagamento Lezione",
                booking_id=booking.id,
                customer_id=booking.user_id,
                payment_reference=booking.payment_reference,
                transfer_reference=result.reference,
            ),
        )
        self.ledger.settle(txn.id)
        booking_state.record_capture(booking, now=now, transfer_reference=result.reference)
        self.booking_repository.flush()

        self.publish(
            PaymentCaptured(
                booking_id=booking.id,
                occurred_at=now,
                instructor_id=booking.instructor_id,
                gross_amount_cents=breakdown.gross_amount_cents,
                platform_fee_cents=breakdown.platform_fee_cents,
                net_amount_cents=breakdown.net_amount_cents,
                transaction_id=txn.id,
            )
        )
        return txn

    def _refund(self, booking: Booking, now: datetime, reason: Optional[str]) -> WalletTransaction:
        if not booking_state.can_transition(booking.booking_status, BookingStatus.REFUNDED):
            raise InvalidTransition(booking.booking_status, BookingStatus.REFUNDED)
        credit = self.ledger.settled_lesson_payment(booking.id)
        if credit is None:
            raise InvalidTransition(
                booking.booking_status, BookingStatus.REFUNDED, "no settled lesson payment"
            )
        self.hold_until_commit(self.locks, wallet_lock_key(credit.wallet_id))

        result = self.gateway.refund(
            booking.payment_reference or "", booking.total_amount_cents, reason
        )
        if not result.success:
            raise PaymentGatewayError("refund", result.failure_reason or "refund was not accepted")
        self.record_external_effect(
            "refund",
            result.reference,
            booking_id=booking.id,
            amount_cents=booking.total_amount_cents,
        )

        refund_txn = self.ledger.append(
            credit.wallet_id,
            LedgerEntry(
                type=TransactionType.REFUND,
                amount_cents=credit.amount_cents,
                currency=credit.currency,
                gross_amount_cents=credit.gross_amount_cents,
                platform_fee_cents=credit.platform_fee_cents,
                net_amount_cents=credit.net_amount_cents,
                description="Rimborso",
                booking_id=booking.id,
                customer_id=booking.user_id,
                related_transaction_id=credit.id,
                payment_reference=booking.payment_reference,
                transfer_reference=result.reference,
                notes=reason,
            ),
        )
        self.ledger.settle(refund_txn.id)
        booking_state.refund(booking, now=now, reason=reason, refund_reference=result.reference)

        self.publish(
            BookingRefunded(
                booking_id=booking.id,
                occurred_at=now,
                refund_amount_cents=refund_txn.amount_cents,
                transaction_id=refund_txn.id,
                reason=reason,
            )
        )
        return refund_txn
