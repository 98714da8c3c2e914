# moveup/repositories/__init__.py
"""
Repository layer for MoveUp.

Usage:
    from moveup.repositories import RepositoryFactory

    # In a service:
    bookings = RepositoryFactory.create_booking_repository(db)
    booking = bookings.get_for_update(booking_id)
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .wallet_repository import WalletRepository, WalletTransactionRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "RepositoryFactory",
    "WalletRepository",
    "WalletTransactionRepository",
]
