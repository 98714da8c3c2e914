# moveup/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .database import get_db
from .services import (
    get_booking_lifecycle_service,
    get_lock_registry,
    get_payment_gateway,
    get_wallet_ledger_service,
)

__all__ = [
    # Database
    "get_db",
    # Services
    "get_booking_lifecycle_service",
    "get_lock_registry",
    "get_payment_gateway",
    "get_wallet_ledger_service",
]
