"""IBAN normalisation, format checks and masking for payout accounts."""

from __future__ import annotations

import re

from ..core.exceptions import InvalidIban

_IBAN_RE = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]+$")

ITALIAN_IBAN_LENGTH = 27
MIN_IBAN_LENGTH = 15
MAX_IBAN_LENGTH = 34
MASK_GROUP = "••••"


def normalize_iban(iban: str) -> str:
    return "".join(iban.split()).upper()


def is_valid_iban(iban: str) -> bool:
    """Format check: Italian IBANs are 27 characters, others 15 to 34."""
    cleaned = normalize_iban(iban)
    if not _IBAN_RE.match(cleaned):
        return False
    if cleaned.startswith("IT"):
        return len(cleaned) == ITALIAN_IBAN_LENGTH
    return MIN_IBAN_LENGTH <= len(cleaned) <= MAX_IBAN_LENGTH


def mask_iban(iban: str) -> str:
    """``IT60X0542811101000000123456`` -> ``IT60 •••• •••• •••• 3456``."""
    cleaned = normalize_iban(iban)
    if not is_valid_iban(cleaned):
        raise InvalidIban()
    return " ".join((cleaned[:4], MASK_GROUP, MASK_GROUP, MASK_GROUP, cleaned[-4:]))


def last_four(masked_iban: str) -> str:
    digits = masked_iban.replace(" ", "").replace("•", "")
    return digits[-4:]
