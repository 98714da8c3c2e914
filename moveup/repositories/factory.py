"""
Repository Factory for MoveUp

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .wallet_repository import WalletRepository, WalletTransactionRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        return BaseRepository(db, model)

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        """Create repository for booking operations."""
        return BookingRepository(db)

    @staticmethod
    def create_wallet_repository(db: Session) -> WalletRepository:
        return WalletRepository(db)

    @staticmethod
    def create_wallet_transaction_repository(db: Session) -> WalletTransactionRepository:
        """Create repository for wallet ledger entries."""
        return WalletTransactionRepository(db)
