"""Unit tests for the booking event registry."""

from datetime import datetime, timezone
import logging

from pydantic import ValidationError
import pytest

from moveup.events import (
    BookingCreated,
    BookingEvents,
    dispatch_all,
    register_listener,
    unregister_listener,
)

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _created() -> BookingCreated:
    return BookingCreated(
        booking_id="b1",
        occurred_at=NOW,
        user_id="s1",
        instructor_id="t1",
        scheduled_at=NOW,
        amount_cents=5000,
    )


def test_events_are_frozen():
    event = _created()
    with pytest.raises(ValidationError):
        event.amount_cents = 1


def test_unknown_fields_rejected():
    with pytest.raises(ValidationError):
        BookingCreated(**_created().model_dump(), extra_field=True)


def test_dispatch_reaches_listeners_in_order():
    received = []
    listener = received.append
    register_listener(listener)
    try:
        dispatch_all([_created(), _created()])
    finally:
        unregister_listener(listener)
    assert len(received) == 2


def test_failing_listener_does_not_block_others(caplog):
    received = []

    def broken(event):
        raise RuntimeError("listener bug")

    listener = received.append
    register_listener(broken)
    register_listener(listener)
    try:
        with caplog.at_level(logging.ERROR):
            BookingEvents.dispatch(_created())
    finally:
        unregister_listener(broken)
        unregister_listener(listener)

    assert len(received) == 1
    assert "listener error" in caplog.text
