"""Unit tests for ULID helpers."""

from datetime import datetime

from moveup.core.ulid_helper import (
    generate_ulid,
    get_timestamp_from_ulid,
    is_valid_ulid,
    parse_ulid,
)


def test_generate_ulid_is_valid():
    value = generate_ulid()
    assert len(value) == 26
    assert is_valid_ulid(value)


def test_generated_ids_are_unique():
    assert len({generate_ulid() for _ in range(100)}) == 100


def test_parse_invalid_returns_none():
    assert parse_ulid("not-a-ulid") is None
    assert not is_valid_ulid("")


def test_timestamp_from_ulid():
    stamp = get_timestamp_from_ulid(generate_ulid())
    assert isinstance(stamp, datetime)
    assert get_timestamp_from_ulid("bad") is None
