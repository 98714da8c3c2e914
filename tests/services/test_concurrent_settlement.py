"""
Concurrency tests for captures, refunds and payouts.

Each worker thread gets its own session on a file-backed SQLite database
while sharing the lock registry and gateway, the way request handlers do
under ``asyncio.to_thread``.
"""

from datetime import timedelta
import threading
import time
from typing import Callable, Generator, List, Tuple

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from moveup.core.entity_lock import EntityLockRegistry
from moveup.core.exceptions import NotAuthorized
from moveup.database import Base
from moveup.database.engines import build_engine
from moveup.integrations.payment_gateway import FakePaymentGateway
from moveup.models.booking import Booking, BookingStatus, PaymentStatus
from moveup.models.wallet import TransactionStatus
from moveup.services.booking_lifecycle_service import BookingLifecycleService
from moveup.services.wallet_ledger_service import WalletLedgerService

INSTRUCTOR_ID = "trainer_01"
IBAN = "IT60X0542811101000000123456"
SETTLE_DELAY_S = 0.3


class SlowSettleLedger(WalletLedgerService):
    """Widens the window between appending an entry and settling it."""

    def settle(self, transaction_id: str):
        time.sleep(SETTLE_DELAY_S)
        return super().settle(transaction_id)


@pytest.fixture
def file_engine(tmp_path) -> Generator[Engine, None, None]:
    engine = build_engine(f"sqlite:///{tmp_path / 'moveup.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_sessions(file_engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=file_engine, autocommit=False, autoflush=False, expire_on_commit=False
    )


@pytest.fixture
def shared_locks() -> EntityLockRegistry:
    return EntityLockRegistry(timeout_s=5.0)


@pytest.fixture
def shared_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def open_services(
    file_sessions, shared_locks, shared_gateway, clock
) -> Generator[Callable[[], Tuple[Session, BookingLifecycleService]], None, None]:
    """Factory for (session, lifecycle) pairs; every session is closed afterwards."""
    opened: List[Session] = []

    def _open() -> Tuple[Session, BookingLifecycleService]:
        session = file_sessions()
        opened.append(session)
        ledger = SlowSettleLedger(session, shared_locks, clock=clock)
        lifecycle = BookingLifecycleService(
            session, shared_gateway, ledger, shared_locks, clock=clock
        )
        return session, lifecycle

    yield _open
    for session in opened:
        session.close()


def _authorized_booking(lifecycle: BookingLifecycleService, clock, reference: str) -> Booking:
    booking = lifecycle.create_booking(
        lesson_id="lesson_yoga_01",
        instructor_id=INSTRUCTOR_ID,
        user_id="student_01",
        scheduled_at=clock() + timedelta(hours=1),
        gross_amount_cents=5000,
    )
    return lifecycle.authorize_payment(booking.id, reference)


def _run_concurrently(*calls: Callable[[], object]) -> List[object]:
    """Start every call at the same moment; results hold return values or exceptions."""
    barrier = threading.Barrier(len(calls))
    results: List[object] = [None] * len(calls)

    def worker(index: int, call: Callable[[], object]) -> None:
        barrier.wait(timeout=5)
        try:
            results[index] = call()
        except Exception as exc:
            results[index] = exc

    threads = [
        threading.Thread(target=worker, args=(index, call)) for index, call in enumerate(calls)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=20)
        assert not thread.is_alive()
    return results


def _check_wallet(open_services, expected_balance: int) -> None:
    _, lifecycle = open_services()
    wallet = lifecycle.ledger.get_wallet(INSTRUCTOR_ID)
    assert wallet.balance_cents == expected_balance
    assert lifecycle.ledger.balance_as_of(wallet.id) == expected_balance


class TestConcurrentCapture:
    def test_same_booking_is_captured_once(self, open_services, shared_gateway, clock):
        _, setup = open_services()
        booking = _authorized_booking(setup, clock, "pi_test_0001")

        _, first = open_services()
        _, second = open_services()
        results = _run_concurrently(
            lambda: first.capture_payment(booking.id),
            lambda: second.capture_payment(booking.id),
        )

        captured = [result for result in results if isinstance(result, Booking)]
        rejected = [result for result in results if isinstance(result, NotAuthorized)]
        assert len(captured) == 1
        assert len(rejected) == 1
        assert captured[0].payment_state == PaymentStatus.CAPTURED
        assert shared_gateway.operations().count("capture") == 1
        _check_wallet(open_services, 4900)

    def test_same_instructor_different_bookings_both_settle(
        self, open_services, shared_locks, clock
    ):
        _, setup = open_services()
        booking_a = _authorized_booking(setup, clock, "pi_test_0001")
        booking_b = _authorized_booking(setup, clock, "pi_test_0002")

        _, first = open_services()
        _, second = open_services()
        started = time.monotonic()
        results = _run_concurrently(
            lambda: first.capture_payment(booking_a.id),
            lambda: second.capture_payment(booking_b.id),
        )
        elapsed = time.monotonic() - started

        assert all(isinstance(result, Booking) for result in results), results
        assert elapsed < shared_locks.timeout_s
        _check_wallet(open_services, 9800)

        _, check = open_services()
        wallet = check.ledger.get_wallet(INSTRUCTOR_ID)
        assert wallet.total_lessons == 2
        assert wallet.total_earnings_cents == 9800

    def test_refund_and_capture_on_one_wallet(self, open_services, clock):
        _, setup = open_services()
        captured = _authorized_booking(setup, clock, "pi_test_0001")
        setup.capture_payment(captured.id)
        pending = _authorized_booking(setup, clock, "pi_test_0002")

        _, first = open_services()
        _, second = open_services()
        results = _run_concurrently(
            lambda: first.cancel(captured.id, "student cancelled"),
            lambda: second.capture_payment(pending.id),
        )

        assert results[0].booking_status == BookingStatus.REFUNDED
        assert results[1].payment_state == PaymentStatus.CAPTURED
        _check_wallet(open_services, 4900)


class TestConcurrentPayout:
    def test_payout_while_capturing(self, open_services, clock):
        _, setup = open_services()
        earned = _authorized_booking(setup, clock, "pi_test_0001")
        setup.capture_payment(earned.id)
        setup.ledger.setup_bank_account(
            INSTRUCTOR_ID, iban=IBAN, account_holder_name="Mario Rossi"
        )
        pending = _authorized_booking(setup, clock, "pi_test_0002")

        _, first = open_services()
        _, second = open_services()
        results = _run_concurrently(
            lambda: first.capture_payment(pending.id),
            lambda: second.ledger.request_payout(INSTRUCTOR_ID, 4900),
        )

        assert results[0].payment_state == PaymentStatus.CAPTURED
        assert results[1].transaction_status == TransactionStatus.PROCESSING
        _check_wallet(open_services, 9800)

        _, check = open_services()
        wallet = check.ledger.get_wallet(INSTRUCTOR_ID)
        assert check.ledger.available_balance(wallet) == 4900
