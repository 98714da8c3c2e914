"""
Unit tests for the booking status machine.

Coverage:
1) Transition table shape (terminal statuses, allowed edges)
2) Paired status/payment status changes
3) Guards on completion, cancellation and no-show
"""

from datetime import datetime, timedelta, timezone

import pytest

from moveup.core.exceptions import InvalidTransition, NotAuthorized
from moveup.domain import booking_state
from moveup.models.booking import Booking, BookingStatus, PaymentStatus

START = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def _booking(status=BookingStatus.PENDING, payment=PaymentStatus.PENDING, **overrides) -> Booking:
    fields = dict(
        id="01HF4G12ABCDEF3456789XYZAB",
        lesson_id="lesson_1",
        instructor_id="trainer_01",
        user_id="student_01",
        scheduled_at=START,
        status=status.value,
        payment_status=payment.value,
        total_amount_cents=5000,
        currency="EUR",
        created_at=START - timedelta(days=1),
        updated_at=START - timedelta(days=1),
    )
    fields.update(overrides)
    return Booking(**fields)


class TestTables:
    def test_terminal_statuses(self):
        assert booking_state.TERMINAL_STATUSES == {
            BookingStatus.COMPLETED,
            BookingStatus.CANCELLED,
            BookingStatus.NO_SHOW,
            BookingStatus.REFUNDED,
        }

    @pytest.mark.parametrize("terminal", sorted(booking_state.TERMINAL_STATUSES))
    def test_terminal_statuses_have_no_exits(self, terminal):
        for target in BookingStatus:
            assert not booking_state.can_transition(terminal, target)

    def test_pending_edges(self):
        assert booking_state.can_transition(BookingStatus.PENDING, BookingStatus.CONFIRMED)
        assert booking_state.can_transition(BookingStatus.PENDING, BookingStatus.CANCELLED)
        assert not booking_state.can_transition(BookingStatus.PENDING, BookingStatus.COMPLETED)
        assert not booking_state.can_transition(BookingStatus.PENDING, BookingStatus.REFUNDED)

    def test_consistency_pairs(self):
        assert booking_state.is_consistent(BookingStatus.COMPLETED, PaymentStatus.CAPTURED)
        assert not booking_state.is_consistent(BookingStatus.COMPLETED, PaymentStatus.AUTHORIZED)
        assert not booking_state.is_consistent(BookingStatus.CANCELLED, PaymentStatus.CAPTURED)
        assert booking_state.is_consistent(BookingStatus.REFUNDED, PaymentStatus.REFUNDED)

    def test_assert_consistent(self):
        booking_state.assert_consistent(_booking())
        with pytest.raises(AssertionError):
            booking_state.assert_consistent(
                _booking(BookingStatus.COMPLETED, PaymentStatus.PENDING)
            )


class TestConfirm:
    def test_confirm_moves_both_statuses(self):
        booking = _booking()
        booking_state.confirm(booking, now=START, payment_reference="pi_1")
        assert booking.booking_status == BookingStatus.CONFIRMED
        assert booking.payment_state == PaymentStatus.AUTHORIZED
        assert booking.payment_reference == "pi_1"
        assert booking.confirmed_at == START
        assert booking.updated_at == START

    def test_confirm_after_failed_attempt(self):
        booking = _booking(payment=PaymentStatus.FAILED)
        booking_state.confirm(booking, now=START, payment_reference="pi_2")
        assert booking.payment_state == PaymentStatus.AUTHORIZED

    def test_confirm_twice_rejected(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.AUTHORIZED)
        with pytest.raises(InvalidTransition):
            booking_state.confirm(booking, now=START, payment_reference="pi_1")

    def test_payment_failure_keeps_booking_pending(self):
        booking = _booking()
        booking_state.record_payment_failure(booking, now=START)
        assert booking.booking_status == BookingStatus.PENDING
        assert booking.payment_state == PaymentStatus.FAILED


class TestCapture:
    def test_capture_keeps_confirmed(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.AUTHORIZED)
        booking_state.record_capture(booking, now=START, transfer_reference="ch_1")
        assert booking.booking_status == BookingStatus.CONFIRMED
        assert booking.payment_state == PaymentStatus.CAPTURED
        assert booking.transfer_reference == "ch_1"

    @pytest.mark.parametrize(
        "payment", [PaymentStatus.PENDING, PaymentStatus.FAILED, PaymentStatus.CAPTURED]
    )
    def test_capture_requires_authorization(self, payment):
        status = (
            BookingStatus.CONFIRMED if payment == PaymentStatus.CAPTURED else BookingStatus.PENDING
        )
        booking = _booking(status, payment)
        with pytest.raises(NotAuthorized):
            booking_state.record_capture(booking, now=START, transfer_reference=None)


class TestComplete:
    def test_requires_validation(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.CAPTURED)
        with pytest.raises(InvalidTransition):
            booking_state.complete(booking, now=START)

    def test_requires_capture(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.AUTHORIZED, validated_at=START)
        with pytest.raises(InvalidTransition):
            booking_state.complete(booking, now=START)

    def test_rejects_validation_before_start(self):
        booking = _booking(
            BookingStatus.CONFIRMED,
            PaymentStatus.CAPTURED,
            validated_at=START - timedelta(minutes=5),
        )
        with pytest.raises(InvalidTransition):
            booking_state.complete(booking, now=START)

    def test_early_window(self):
        booking = _booking(
            BookingStatus.CONFIRMED,
            PaymentStatus.CAPTURED,
            validated_at=START - timedelta(minutes=5),
        )
        booking_state.complete(booking, now=START, early_window=timedelta(minutes=10))
        assert booking.booking_status == BookingStatus.COMPLETED
        assert booking.completed_at == START

    def test_complete(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.CAPTURED, validated_at=START)
        booking_state.complete(booking, now=START)
        assert booking.booking_status == BookingStatus.COMPLETED
        assert booking.payment_state == PaymentStatus.CAPTURED


class TestCancel:
    def test_pending_booking(self):
        booking = _booking()
        booking_state.cancel(booking, now=START, reason="changed plans")
        assert booking.booking_status == BookingStatus.CANCELLED
        assert booking.payment_state == PaymentStatus.PENDING
        assert booking.cancellation_reason == "changed plans"
        assert booking.cancelled_at == START

    def test_authorized_payment_is_voided(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.AUTHORIZED)
        booking_state.cancel(booking, now=START, reason=None)
        assert booking.booking_status == BookingStatus.CANCELLED
        assert booking.payment_state == PaymentStatus.VOIDED

    def test_captured_payment_must_be_refunded(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.CAPTURED)
        with pytest.raises(InvalidTransition):
            booking_state.cancel(booking, now=START, reason=None)

    def test_terminal_booking(self):
        booking = _booking(BookingStatus.COMPLETED, PaymentStatus.CAPTURED)
        with pytest.raises(InvalidTransition):
            booking_state.cancel(booking, now=START, reason=None)


class TestRefund:
    def test_refund_captured(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.CAPTURED)
        booking_state.refund(booking, now=START, reason="sick", refund_reference="re_1")
        assert booking.booking_status == BookingStatus.REFUNDED
        assert booking.payment_state == PaymentStatus.REFUNDED
        assert booking.refund_reference == "re_1"

    def test_refund_requires_capture(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.AUTHORIZED)
        with pytest.raises(InvalidTransition):
            booking_state.refund(booking, now=START, reason=None, refund_reference=None)


class TestNoShow:
    def test_after_start(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.AUTHORIZED)
        booking_state.mark_no_show(booking, now=START + timedelta(minutes=30))
        assert booking.booking_status == BookingStatus.NO_SHOW
        assert booking.payment_state == PaymentStatus.AUTHORIZED

    def test_before_start(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.AUTHORIZED)
        with pytest.raises(InvalidTransition):
            booking_state.mark_no_show(booking, now=START - timedelta(minutes=1))

    def test_validated_lesson(self):
        booking = _booking(BookingStatus.CONFIRMED, PaymentStatus.CAPTURED, validated_at=START)
        with pytest.raises(InvalidTransition):
            booking_state.mark_no_show(booking, now=START + timedelta(hours=1))

    def test_pending_booking(self):
        with pytest.raises(InvalidTransition):
            booking_state.mark_no_show(_booking(), now=START + timedelta(hours=1))
