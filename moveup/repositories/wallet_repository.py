# moveup/repositories/wallet_repository.py
"""
Wallet Repository for MoveUp

Data access for instructor wallets and their transaction ledger, including
the aggregate queries the ledger uses to recompute balances from scratch.
"""

import logging
from typing import Iterable, List, Optional, Tuple, Union

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.wallet import (
    CREDIT_TYPES,
    DEBIT_TYPES,
    OPEN_TRANSACTION_STATUSES,
    TransactionStatus,
    TransactionType,
    Wallet,
    WalletTransaction,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _values(items: Iterable[Union[TransactionType, TransactionStatus]]) -> List[str]:
    return sorted(item.value for item in items)


class WalletRepository(BaseRepository[Wallet]):
    """Repository for instructor wallets."""

    def __init__(self, db: Session):
        super().__init__(db, Wallet)

    def get_by_instructor(self, instructor_id: str, *, for_update: bool = False) -> Optional[Wallet]:
        try:
            query = self.db.query(Wallet).filter(Wallet.instructor_id == instructor_id)
            if for_update:
                query = query.with_for_update().populate_existing()
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting wallet for instructor {instructor_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve wallet: {str(e)}")


class WalletTransactionRepository(BaseRepository[WalletTransaction]):
    """Repository for the append-only wallet ledger."""

    def __init__(self, db: Session):
        super().__init__(db, WalletTransaction)

    def list_for_wallet(
        self, wallet_id: str, *, offset: int = 0, limit: int = 20
    ) -> Tuple[List[WalletTransaction], int]:
        """Newest-first page of a wallet's transactions plus the total count."""
        try:
            query = self.db.query(WalletTransaction).filter(
                WalletTransaction.wallet_id == wallet_id
            )
            total = query.count()
            items = (
                query.order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return items, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing transactions for wallet {wallet_id}: {str(e)}")
            raise RepositoryException(f"Failed to list transactions: {str(e)}")

    def find_for_booking(
        self, booking_id: str, transaction_type: TransactionType
    ) -> List[WalletTransaction]:
        try:
            return (
                self.db.query(WalletTransaction)
                .filter(
                    WalletTransaction.booking_id == booking_id,
                    WalletTransaction.type == transaction_type.value,
                )
                .order_by(WalletTransaction.created_at.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding transactions for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to find booking transactions: {str(e)}")

    def completed_balance(self, wallet_id: str) -> int:
        """Fold over completed transactions: credits minus debits."""
        try:
            signed = case(
                (
                    WalletTransaction.type.in_(_values(CREDIT_TYPES)),
                    WalletTransaction.amount_cents,
                ),
                else_=-WalletTransaction.amount_cents,
            )
            total = (
                self.db.query(func.coalesce(func.sum(signed), 0))
                .filter(
                    WalletTransaction.wallet_id == wallet_id,
                    WalletTransaction.status == TransactionStatus.COMPLETED.value,
                )
                .scalar()
            )
            return int(total or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error folding ledger for wallet {wallet_id}: {str(e)}")
            raise RepositoryException(f"Failed to compute balance: {str(e)}")

    def open_debit_total(self, wallet_id: str) -> int:
        """Sum of debits still pending or processing."""
        try:
            total = (
                self.db.query(func.coalesce(func.sum(WalletTransaction.amount_cents), 0))
                .filter(
                    WalletTransaction.wallet_id == wallet_id,
                    WalletTransaction.type.in_(_values(DEBIT_TYPES)),
                    WalletTransaction.status.in_(_values(OPEN_TRANSACTION_STATUSES)),
                )
                .scalar()
            )
            return int(total or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error summing open debits for wallet {wallet_id}: {str(e)}")
            raise RepositoryException(f"Failed to compute open debits: {str(e)}")
