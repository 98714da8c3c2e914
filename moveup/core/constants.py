"""Application-wide constants for the MoveUp platform."""

from __future__ import annotations

BRAND_NAME = "MoveUp"

DEFAULT_CURRENCY = "EUR"

# QR scan token layout: MOVEUP:BOOKING:<booking_id>:TRAINER:<instructor_id>
QR_TOKEN_SEPARATOR = ":"
QR_TOKEN_BRAND = "MOVEUP"
QR_TOKEN_BOOKING_TAG = "BOOKING"
QR_TOKEN_TRAINER_TAG = "TRAINER"
QR_TOKEN_FIELD_COUNT = 5

# Text constraints
MAX_NOTES_LENGTH = 1000
MAX_REASON_LENGTH = 255

# Query limits
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# API metadata
API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "Booking lifecycle, QR lesson validation and instructor wallets"
API_VERSION = "1.0.0"
