"""
Database models for the MoveUp platform.

- Booking: a student's reservation of a lesson, with payment state
- Wallet / WalletTransaction: instructor earnings ledger
"""

from .booking import Booking, BookingStatus, PaymentStatus
from .wallet import (
    CREDIT_TYPES,
    DEBIT_TYPES,
    TransactionStatus,
    TransactionType,
    Wallet,
    WalletTransaction,
)

__all__ = [
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "Wallet",
    "WalletTransaction",
    "TransactionType",
    "TransactionStatus",
    "CREDIT_TYPES",
    "DEBIT_TYPES",
]
