# moveup/models/wallet.py
"""
Instructor wallet and its append-only transaction ledger.

``Wallet.balance_cents`` is a cache of the ledger: it always equals the sum
of completed credit transactions minus completed debit transactions for the
wallet. Only the wallet ledger service writes it.
"""

from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..core.constants import DEFAULT_CURRENCY
from ..database import Base
from .types import UTCDateTime


class TransactionType(str, Enum):
    """Types of wallet ledger entries."""

    LESSON_PAYMENT = "lesson_payment"
    PAYOUT = "payout"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    BONUS = "bonus"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


CREDIT_TYPES: FrozenSet[TransactionType] = frozenset(
    {TransactionType.LESSON_PAYMENT, TransactionType.BONUS, TransactionType.ADJUSTMENT}
)
DEBIT_TYPES: FrozenSet[TransactionType] = frozenset(
    {TransactionType.PAYOUT, TransactionType.REFUND}
)
OPEN_TRANSACTION_STATUSES: FrozenSet[TransactionStatus] = frozenset(
    {TransactionStatus.PENDING, TransactionStatus.PROCESSING}
)


class Wallet(Base):
    """One wallet per instructor, created on the first earning event."""

    __tablename__ = "wallets"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    instructor_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    balance_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=DEFAULT_CURRENCY)

    # Stats
    total_earnings_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_lessons: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_withdrawn_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Bank account setup (only the masked IBAN is kept)
    bank_account_setup: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    masked_iban: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    account_holder_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    bank_country: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    stripe_connected_account_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    transactions: Mapped[List["WalletTransaction"]] = relationship(
        "WalletTransaction", back_populates="wallet", order_by="WalletTransaction.created_at"
    )

    @property
    def average_lesson_price_cents(self) -> int:
        if self.total_lessons <= 0:
            return 0
        return self.total_earnings_cents // self.total_lessons

    def __repr__(self) -> str:
        return f"<Wallet {self.id}: instructor={self.instructor_id}, balance={self.balance_cents}>"


class WalletTransaction(Base):
    """Ledger entry. Never deleted; completed entries are immutable."""

    __tablename__ = "wallet_transactions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    wallet_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("wallets.id", ondelete="RESTRICT"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.PENDING.value
    )

    # Magnitude applied to the balance; the type decides the sign
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=DEFAULT_CURRENCY)

    # Fee breakdown (lesson payments and their refunds)
    gross_amount_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    platform_fee_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    net_amount_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    booking_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True, index=True)
    customer_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    related_transaction_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True)

    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    transfer_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    failed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    wallet: Mapped[Wallet] = relationship("Wallet", back_populates="transactions")

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_wallet_transactions_amount_non_negative"),
        CheckConstraint(
            "type IN ('lesson_payment', 'payout', 'refund', 'adjustment', 'bonus')",
            name="ck_wallet_transactions_type",
        ),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed', 'refunded', 'cancelled')",
            name="ck_wallet_transactions_status",
        ),
        Index("ix_wallet_transactions_wallet_created_at", "wallet_id", "created_at"),
    )

    @property
    def transaction_type(self) -> TransactionType:
        return TransactionType(self.type)

    @property
    def transaction_status(self) -> TransactionStatus:
        return TransactionStatus(self.status)

    @property
    def is_credit(self) -> bool:
        return self.transaction_type in CREDIT_TYPES

    @property
    def is_debit(self) -> bool:
        return self.transaction_type in DEBIT_TYPES

    @property
    def signed_amount_cents(self) -> int:
        """Effect on the wallet balance once completed."""
        return self.amount_cents if self.is_credit else -self.amount_cents

    def __repr__(self) -> str:
        return (
            f"<WalletTransaction {self.id}: wallet={self.wallet_id}, type={self.type}, "
            f"amount={self.amount_cents}, status={self.status}>"
        )
