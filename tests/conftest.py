# tests/conftest.py
"""
Pytest configuration for the MoveUp test suite.

Every test gets a fresh in-memory SQLite database, a pinned clock, the
in-process payment gateway and a local-only lock registry. Route tests
reuse the same objects through FastAPI dependency overrides.
"""

import os

# Set test mode BEFORE any moveup imports
os.environ["MOVEUP_ENVIRONMENT"] = "test"
os.environ["MOVEUP_DATABASE_URL"] = "sqlite://"
os.environ["MOVEUP_PAYMENT_GATEWAY"] = "fake"
os.environ.pop("MOVEUP_REDIS_URL", None)

from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, List

from fastapi import Depends
from fastapi.testclient import TestClient
import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from moveup import models  # noqa: F401  (registers mappers)
from moveup.api.dependencies import (
    get_booking_lifecycle_service,
    get_db,
    get_lock_registry,
    get_payment_gateway,
    get_wallet_ledger_service,
)
from moveup.core.entity_lock import EntityLockRegistry
from moveup.database import Base
from moveup.database.engines import build_engine
from moveup.domain.fees import DEFAULT_FEE_SCHEDULE
from moveup.events import BookingEvent, register_listener, unregister_listener
from moveup.integrations.payment_gateway import FakePaymentGateway
from moveup.main import app
from moveup.models.booking import Booking
from moveup.services.booking_lifecycle_service import BookingLifecycleService
from moveup.services.wallet_ledger_service import WalletLedgerService

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
INSTRUCTOR_ID = "trainer_01"
STUDENT_ID = "student_01"
LESSON_ID = "lesson_yoga_01"


class FakeClock:
    """Callable clock that only moves when a test moves it."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    test_engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def locks() -> EntityLockRegistry:
    return EntityLockRegistry(timeout_s=2.0)


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def ledger(db: Session, locks: EntityLockRegistry, clock: FakeClock) -> WalletLedgerService:
    return WalletLedgerService(db, locks, clock=clock)


@pytest.fixture
def lifecycle(
    db: Session,
    gateway: FakePaymentGateway,
    ledger: WalletLedgerService,
    locks: EntityLockRegistry,
    clock: FakeClock,
) -> BookingLifecycleService:
    return BookingLifecycleService(
        db, gateway, ledger, locks, fee_schedule=DEFAULT_FEE_SCHEDULE, clock=clock
    )


@pytest.fixture
def captured_events() -> Generator[List[BookingEvent], None, None]:
    received: List[BookingEvent] = []
    listener = received.append
    register_listener(listener)
    yield received
    unregister_listener(listener)


@pytest.fixture
def make_booking(lifecycle: BookingLifecycleService, clock: FakeClock) -> Callable[..., Booking]:
    """Factory for pending bookings one hour after the pinned clock."""

    def _make(
        *,
        amount_cents: int = 5000,
        instructor_id: str = INSTRUCTOR_ID,
        user_id: str = STUDENT_ID,
        starts_in: timedelta = timedelta(hours=1),
    ) -> Booking:
        return lifecycle.create_booking(
            lesson_id=LESSON_ID,
            instructor_id=instructor_id,
            user_id=user_id,
            scheduled_at=clock() + starts_in,
            gross_amount_cents=amount_cents,
        )

    return _make


@pytest.fixture
def confirmed_booking(
    make_booking: Callable[..., Booking], lifecycle: BookingLifecycleService
) -> Booking:
    booking = make_booking()
    return lifecycle.authorize_payment(booking.id, "pi_test_0001")


@pytest.fixture
def client(
    session_factory: sessionmaker,
    locks: EntityLockRegistry,
    gateway: FakePaymentGateway,
    clock: FakeClock,
) -> Generator[TestClient, None, None]:
    """TestClient wired to the test database, gateway and clock."""

    def override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def override_ledger(db: Session = Depends(get_db)) -> WalletLedgerService:
        return WalletLedgerService(db, locks, clock=clock)

    def override_lifecycle(
        db: Session = Depends(get_db),
        ledger: WalletLedgerService = Depends(get_wallet_ledger_service),
    ) -> BookingLifecycleService:
        return BookingLifecycleService(db, gateway, ledger, locks, clock=clock)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lock_registry] = lambda: locks
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_wallet_ledger_service] = override_ledger
    app.dependency_overrides[get_booking_lifecycle_service] = override_lifecycle
    try:
        # No context manager: the lifespan would create tables on the configured engine
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
