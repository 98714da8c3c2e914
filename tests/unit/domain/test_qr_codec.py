"""Unit tests for QR scan token encoding, decoding and validation."""

from datetime import datetime, timezone

import pytest

from moveup.core.exceptions import AlreadyValidated, BookingMismatch, MalformedToken, NotEligible
from moveup.domain import qr_codec
from moveup.models.booking import Booking, BookingStatus, PaymentStatus

BOOKING_ID = "01HF4G12ABCDEF3456789XYZAB"
INSTRUCTOR_ID = "trainer_01"


def _booking(**overrides) -> Booking:
    fields = dict(
        id=BOOKING_ID,
        lesson_id="lesson_1",
        instructor_id=INSTRUCTOR_ID,
        user_id="student_1",
        scheduled_at=datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc),
        status=BookingStatus.CONFIRMED.value,
        payment_status=PaymentStatus.AUTHORIZED.value,
        total_amount_cents=5000,
        currency="EUR",
    )
    fields.update(overrides)
    return Booking(**fields)


class TestEncode:
    def test_token_layout(self):
        assert qr_codec.encode(_booking()) == f"MOVEUP:BOOKING:{BOOKING_ID}:TRAINER:{INSTRUCTOR_ID}"

    def test_decode_inverts_encode(self):
        token = qr_codec.encode_ids("b-1", "t-9")
        assert qr_codec.decode(token) == ("b-1", "t-9")

    @pytest.mark.parametrize("booking_id, instructor_id", [("", "t"), ("b", ""), ("a:b", "t")])
    def test_rejects_unencodable_ids(self, booking_id, instructor_id):
        with pytest.raises(MalformedToken):
            qr_codec.encode_ids(booking_id, instructor_id)


class TestDecode:
    @pytest.mark.parametrize(
        "token",
        [
            "",
            "hello",
            "MOVEUP:BOOKING:abc",
            "MOVEUP:BOOKING:abc:TRAINER",
            "MOVEUP:BOOKING:abc:TRAINER:t1:extra",
            "OTHER:BOOKING:abc:TRAINER:t1",
            "MOVEUP:LESSON:abc:TRAINER:t1",
            "MOVEUP:BOOKING:abc:COACH:t1",
            "moveup:booking:abc:trainer:t1",
        ],
    )
    def test_malformed(self, token):
        with pytest.raises(MalformedToken):
            qr_codec.decode(token)

    @pytest.mark.parametrize(
        "token, expected",
        [
            ("MOVEUP:BOOKING::TRAINER:t1", ("", "t1")),
            ("MOVEUP:BOOKING:abc:TRAINER:", ("abc", "")),
        ],
    )
    def test_empty_ids_decode(self, token, expected):
        assert qr_codec.decode(token) == expected

    @pytest.mark.parametrize(
        "token",
        [f"MOVEUP:BOOKING::TRAINER:{INSTRUCTOR_ID}", f"MOVEUP:BOOKING:{BOOKING_ID}:TRAINER:"],
    )
    def test_empty_ids_never_validate(self, token):
        with pytest.raises(BookingMismatch):
            qr_codec.validate(_booking(), token)

    def test_non_string(self):
        with pytest.raises(MalformedToken):
            qr_codec.decode(None)

    def test_is_qr_token(self):
        assert qr_codec.is_qr_token("MOVEUP:BOOKING:x:TRAINER:y")
        assert not qr_codec.is_qr_token("https://example.com")
        assert not qr_codec.is_qr_token(42)


class TestValidate:
    def test_accepts_matching_confirmed_booking(self):
        booking = _booking()
        decoded = qr_codec.validate(booking, qr_codec.encode(booking))
        assert decoded.booking_id == BOOKING_ID
        assert decoded.instructor_id == INSTRUCTOR_ID

    def test_other_booking(self):
        token = qr_codec.encode_ids("01HF4G12ABCDEF3456789XYZAC", INSTRUCTOR_ID)
        with pytest.raises(BookingMismatch):
            qr_codec.validate(_booking(), token)

    def test_other_instructor(self):
        token = qr_codec.encode_ids(BOOKING_ID, "trainer_02")
        with pytest.raises(BookingMismatch):
            qr_codec.validate(_booking(), token)

    def test_already_validated(self):
        booking = _booking(validated_at=datetime(2026, 3, 2, 10, 1, tzinfo=timezone.utc))
        with pytest.raises(AlreadyValidated):
            qr_codec.validate(booking, qr_codec.encode(booking))

    def test_already_validated_checked_before_eligibility(self):
        booking = _booking(
            status=BookingStatus.COMPLETED.value,
            payment_status=PaymentStatus.CAPTURED.value,
            validated_at=datetime(2026, 3, 2, 10, 1, tzinfo=timezone.utc),
        )
        with pytest.raises(AlreadyValidated):
            qr_codec.validate(booking, qr_codec.encode(booking))

    @pytest.mark.parametrize(
        "status, payment",
        [
            (BookingStatus.PENDING, PaymentStatus.PENDING),
            (BookingStatus.CONFIRMED, PaymentStatus.CAPTURED),
            (BookingStatus.CANCELLED, PaymentStatus.VOIDED),
            (BookingStatus.REFUNDED, PaymentStatus.REFUNDED),
        ],
    )
    def test_not_eligible(self, status, payment):
        booking = _booking(status=status.value, payment_status=payment.value)
        with pytest.raises(NotEligible):
            qr_codec.validate(booking, qr_codec.encode(booking))

    def test_malformed_checked_first(self):
        booking = _booking(status=BookingStatus.CANCELLED.value)
        with pytest.raises(MalformedToken):
            qr_codec.validate(booking, "garbage")
