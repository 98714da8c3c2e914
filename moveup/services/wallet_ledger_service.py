# moveup/services/wallet_ledger_service.py
"""
Wallet Ledger Service for MoveUp

Owns every write to instructor wallets. Transactions are appended in
``pending`` and only ever move forward:

    pending -> processing -> completed | failed | cancelled

Settling applies the transaction to the cached wallet balance; the cache
must always equal the fold over completed transactions (``balance_as_of``).
A settled transaction is never edited: reversals go through a new refund
entry.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
from typing import Iterator, List, Optional

from sqlalchemy.orm import Session

from ..core.constants import DEFAULT_CURRENCY, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..core.entity_lock import (
    EntityLockRegistry,
    instructor_wallet_lock_key,
    wallet_lock_key,
)
from ..core.exceptions import (
    BankAccountRequired,
    InsufficientBalance,
    InvalidAmount,
    InvalidInitialStatus,
    InvalidIban,
    InvalidTransition,
    TransactionNotFound,
    ValidationException,
    WalletNotFound,
)
from ..core.timezone_utils import Clock
from ..domain.fees import DEFAULT_FEE_SCHEDULE, FeeSchedule, calculate_fee
from ..domain.iban import is_valid_iban, mask_iban, normalize_iban
from ..events.booking_events import TransactionSettled
from ..models.wallet import (
    OPEN_TRANSACTION_STATUSES,
    TransactionStatus,
    TransactionType,
    Wallet,
    WalletTransaction,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.wallet_repository import WalletRepository, WalletTransactionRepository
from .base import BaseService

logger = logging.getLogger(__name__)

EARNING_TYPES = frozenset({TransactionType.LESSON_PAYMENT, TransactionType.BONUS})


@dataclass
class LedgerEntry:
    """A transaction to append; ``amount_cents`` is the magnitude applied to the balance."""

    type: TransactionType
    amount_cents: int
    status: TransactionStatus = TransactionStatus.PENDING
    description: str = ""
    currency: str = DEFAULT_CURRENCY
    gross_amount_cents: Optional[int] = None
    platform_fee_cents: Optional[int] = None
    net_amount_cents: Optional[int] = None
    booking_id: Optional[str] = None
    customer_id: Optional[str] = None
    related_transaction_id: Optional[str] = None
    payment_reference: Optional[str] = None
    transfer_reference: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class TransactionPage:
    items: List[WalletTransaction] = field(default_factory=list)
    total: int = 0
    page: int = 1
    size: int = DEFAULT_PAGE_SIZE

    @property
    def has_more(self) -> bool:
        return self.page * self.size < self.total


@dataclass(frozen=True)
class WalletSummary:
    wallet: Wallet
    balance_cents: int
    available_balance_cents: int
    pending_earnings_cents: int
    recent_transactions: List[WalletTransaction]


class WalletLedgerService(BaseService):
    """Append-only ledger and balance bookkeeping for instructor wallets."""

    def __init__(
        self,
        db: Session,
        locks: EntityLockRegistry,
        *,
        clock: Optional[Clock] = None,
        currency: str = DEFAULT_CURRENCY,
        fee_schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
    ):
        super().__init__(db, clock)
        self.locks = locks
        self.currency = currency
        self.fee_schedule = fee_schedule
        self.wallet_repository: WalletRepository = RepositoryFactory.create_wallet_repository(db)
        self.transaction_repository: WalletTransactionRepository = (
            RepositoryFactory.create_wallet_transaction_repository(db)
        )
        self.booking_repository: BookingRepository = (
            RepositoryFactory.create_booking_repository(db)
        )

    # Wallets

    def get_wallet(self, instructor_id: str) -> Wallet:
        wallet = self.wallet_repository.get_by_instructor(instructor_id)
        if wallet is None:
            raise WalletNotFound(instructor_id)
        return wallet

    @BaseService.measure_operation("wallet.get_or_create")
    def get_or_create_wallet(self, instructor_id: str) -> Wallet:
        """Return the instructor's wallet, creating an empty one on first use."""
        with self.transaction():
            with self._locked(instructor_wallet_lock_key(instructor_id)):
                wallet = self.wallet_repository.get_by_instructor(instructor_id)
                if wallet is not None:
                    return wallet
                now = self.now()
                wallet = self.wallet_repository.create(
                    instructor_id=instructor_id,
                    balance_cents=0,
                    currency=self.currency,
                    total_earnings_cents=0,
                    total_lessons=0,
                    total_withdrawn_cents=0,
                    bank_account_setup=False,
                    created_at=now,
                    updated_at=now,
                )
                logger.info(
                    "wallet_created",
                    extra={"wallet_id": wallet.id, "instructor_id": instructor_id},
                )
                return wallet

    # Ledger

    @BaseService.measure_operation("wallet.append")
    def append(self, wallet_id: str, entry: LedgerEntry) -> WalletTransaction:
        """
        Append a transaction to a wallet's ledger.

        Raises:
            InvalidInitialStatus: entry is not ``pending``
            InvalidAmount: negative amounts or an inconsistent fee breakdown
            WalletNotFound: unknown wallet
        """
        if entry.status != TransactionStatus.PENDING:
            raise InvalidInitialStatus(entry.status)
        self._check_amounts(entry)

        with self.transaction():
            with self._locked(wallet_lock_key(wallet_id)):
                wallet = self.wallet_repository.get_by_id(wallet_id)
                if wallet is None:
                    raise WalletNotFound(wallet_id)
                now = self.now()
                txn = self.transaction_repository.create(
                    wallet_id=wallet_id,
                    type=entry.type.value,
                    status=TransactionStatus.PENDING.value,
                    amount_cents=entry.amount_cents,
                    currency=entry.currency,
                    gross_amount_cents=entry.gross_amount_cents,
                    platform_fee_cents=entry.platform_fee_cents,
                    net_amount_cents=entry.net_amount_cents,
                    description=entry.description,
                    notes=entry.notes,
                    booking_id=entry.booking_id,
                    customer_id=entry.customer_id,
                    related_transaction_id=entry.related_transaction_id,
                    payment_reference=entry.payment_reference,
                    transfer_reference=entry.transfer_reference,
                    created_at=now,
                    updated_at=now,
                )
                logger.info(
                    "ledger_append",
                    extra={
                        "wallet_id": wallet_id,
                        "transaction_id": txn.id,
                        "type": entry.type.value,
                        "amount_cents": entry.amount_cents,
                    },
                )
                return txn

    @BaseService.measure_operation("wallet.mark_processing")
    def mark_processing(self, transaction_id: str) -> WalletTransaction:
        with self.transaction():
            txn = self._get_transaction_for_update(transaction_id)
            self._require_status(txn, TransactionStatus.PROCESSING, {TransactionStatus.PENDING})
            txn.status = TransactionStatus.PROCESSING.value
            txn.updated_at = self.now()
            self.transaction_repository.flush()
            return txn

    @BaseService.measure_operation("wallet.settle")
    def settle(self, transaction_id: str) -> WalletTransaction:
        """
        Complete a pending or processing transaction and apply it to the wallet.

        Credits add ``amount_cents`` to the balance, debits subtract it.
        Lesson payments also bump earnings and lesson count; refunds take the
        refunded net and one lesson back off; payouts add to the withdrawn total.
        """
        txn = self._get_transaction(transaction_id)
        with self.transaction():
            with self._locked(wallet_lock_key(txn.wallet_id)):
                txn = self._get_transaction_for_update(transaction_id)
                self._require_status(txn, TransactionStatus.COMPLETED, OPEN_TRANSACTION_STATUSES)
                wallet = self.wallet_repository.get_for_update(txn.wallet_id)
                if wallet is None:
                    raise WalletNotFound(txn.wallet_id)

                kind = txn.transaction_type
                amount = txn.amount_cents
                if kind == TransactionType.PAYOUT and amount > wallet.balance_cents:
                    raise InsufficientBalance(amount, wallet.balance_cents)

                now = self.now()
                txn.status = TransactionStatus.COMPLETED.value
                txn.completed_at = now
                txn.updated_at = now

                wallet.balance_cents += txn.signed_amount_cents
                if kind in EARNING_TYPES:
                    wallet.total_earnings_cents += amount
                if kind == TransactionType.LESSON_PAYMENT:
                    wallet.total_lessons += 1
                elif kind == TransactionType.REFUND:
                    wallet.total_earnings_cents -= amount
                    wallet.total_lessons = max(0, wallet.total_lessons - 1)
                elif kind == TransactionType.PAYOUT:
                    wallet.total_withdrawn_cents += amount
                wallet.updated_at = now
                self.wallet_repository.flush()

                prometheus_metrics.record_ledger_settlement(
                    kind.value, TransactionStatus.COMPLETED.value
                )
                logger.info(
                    "ledger_settle",
                    extra={
                        "wallet_id": wallet.id,
                        "transaction_id": txn.id,
                        "type": kind.value,
                        "signed_amount_cents": txn.signed_amount_cents,
                        "balance_cents": wallet.balance_cents,
                    },
                )
                self.publish(
                    TransactionSettled(
                        booking_id=txn.booking_id or "",
                        occurred_at=now,
                        transaction_id=txn.id,
                        wallet_id=wallet.id,
                        transaction_type=kind.value,
                        amount_cents=amount,
                        balance_cents=wallet.balance_cents,
                    )
                )
                return txn

    @BaseService.measure_operation("wallet.fail")
    def fail(self, transaction_id: str, reason: str) -> WalletTransaction:
        """Mark a transaction failed. The balance is untouched."""
        with self.transaction():
            txn = self._get_transaction_for_update(transaction_id)
            self._require_status(txn, TransactionStatus.FAILED, OPEN_TRANSACTION_STATUSES)
            now = self.now()
            txn.status = TransactionStatus.FAILED.value
            txn.failure_reason = reason
            txn.failed_at = now
            txn.updated_at = now
            self.transaction_repository.flush()
            prometheus_metrics.record_ledger_settlement(txn.type, TransactionStatus.FAILED.value)
            logger.warning(
                "ledger_fail", extra={"transaction_id": txn.id, "failure_reason": reason}
            )
            return txn

    @BaseService.measure_operation("wallet.cancel_transaction")
    def cancel_transaction(self, transaction_id: str) -> WalletTransaction:
        with self.transaction():
            txn = self._get_transaction_for_update(transaction_id)
            self._require_status(txn, TransactionStatus.CANCELLED, OPEN_TRANSACTION_STATUSES)
            txn.status = TransactionStatus.CANCELLED.value
            txn.updated_at = self.now()
            self.transaction_repository.flush()
            prometheus_metrics.record_ledger_settlement(txn.type, TransactionStatus.CANCELLED.value)
            return txn

    def balance_as_of(self, wallet_id: str) -> int:
        """Balance recomputed from scratch: completed credits minus completed debits."""
        return self.transaction_repository.completed_balance(wallet_id)

    def available_balance(self, wallet: Wallet) -> int:
        """Balance less debits that are still pending or processing."""
        return wallet.balance_cents - self.transaction_repository.open_debit_total(wallet.id)

    def pending_earnings(self, instructor_id: str) -> int:
        """Net the instructor would earn from authorized, not yet captured bookings."""
        return sum(
            calculate_fee(gross, self.fee_schedule).net_amount_cents
            for gross in self.booking_repository.get_held_amounts(instructor_id)
        )

    def assert_balance_consistent(self, wallet_id: str) -> None:
        wallet = self.wallet_repository.get_by_id(wallet_id)
        if wallet is None:
            raise WalletNotFound(wallet_id)
        folded = self.balance_as_of(wallet_id)
        if wallet.balance_cents != folded:
            raise AssertionError(
                f"Wallet {wallet_id} balance {wallet.balance_cents} != ledger fold {folded}"
            )

    # Queries

    def get_transaction(self, transaction_id: str) -> WalletTransaction:
        return self._get_transaction(transaction_id)

    def settled_lesson_payment(self, booking_id: str) -> Optional[WalletTransaction]:
        """The completed lesson-payment credit for a booking, if any."""
        for txn in self.transaction_repository.find_for_booking(
            booking_id, TransactionType.LESSON_PAYMENT
        ):
            if txn.transaction_status == TransactionStatus.COMPLETED:
                return txn
        return None

    def list_transactions(
        self, instructor_id: str, page: int = 1, size: int = DEFAULT_PAGE_SIZE
    ) -> TransactionPage:
        """Newest-first transaction history for an instructor."""
        if page < 1:
            raise ValidationException("page must be >= 1", code="INVALID_PAGE")
        size = max(1, min(size, MAX_PAGE_SIZE))
        wallet = self.wallet_repository.get_by_instructor(instructor_id)
        if wallet is None:
            return TransactionPage(page=page, size=size)
        items, total = self.transaction_repository.list_for_wallet(
            wallet.id, offset=(page - 1) * size, limit=size
        )
        return TransactionPage(items=items, total=total, page=page, size=size)

    def get_summary(self, instructor_id: str, recent: int = 5) -> WalletSummary:
        """Balance figures plus the latest transactions for the wallet screen."""
        wallet = self.get_wallet(instructor_id)
        recent_page = self.list_transactions(instructor_id, page=1, size=recent)
        return WalletSummary(
            wallet=wallet,
            balance_cents=wallet.balance_cents,
            available_balance_cents=self.available_balance(wallet),
            pending_earnings_cents=self.pending_earnings(instructor_id),
            recent_transactions=recent_page.items,
        )

    # Bank account and payouts

    @BaseService.measure_operation("wallet.setup_bank_account")
    def setup_bank_account(
        self,
        instructor_id: str,
        *,
        iban: str,
        account_holder_name: str,
        country: str = "IT",
    ) -> Wallet:
        """Validate and store payout details; only the masked IBAN is kept."""
        if not is_valid_iban(iban):
            raise InvalidIban()
        holder = account_holder_name.strip()
        if not holder:
            raise ValidationException(
                "Account holder name is required", code="ACCOUNT_HOLDER_REQUIRED"
            )

        wallet = self.get_or_create_wallet(instructor_id)
        with self.transaction():
            with self._locked(wallet_lock_key(wallet.id)):
                wallet = self.wallet_repository.get_for_update(wallet.id)
                assert wallet is not None
                wallet.masked_iban = mask_iban(iban)
                wallet.account_holder_name = holder
                wallet.bank_country = (country or normalize_iban(iban)[:2]).upper()
                wallet.bank_account_setup = True
                wallet.updated_at = self.now()
                self.wallet_repository.flush()
                self.log_operation(
                    "setup_bank_account", wallet_id=wallet.id, country=wallet.bank_country
                )
                return wallet

    @BaseService.measure_operation("wallet.request_payout")
    def request_payout(self, instructor_id: str, amount_cents: int) -> WalletTransaction:
        """
        Queue a withdrawal to the instructor's bank account.

        The payout is appended and moved to ``processing``; it reduces the
        available balance immediately and the balance once settled.
        """
        if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
            raise InvalidAmount(amount_cents)

        wallet = self.get_wallet(instructor_id)
        if not wallet.bank_account_setup:
            raise BankAccountRequired(instructor_id)

        with self.transaction():
            with self._locked(wallet_lock_key(wallet.id)):
                wallet = self.wallet_repository.get_for_update(wallet.id)
                assert wallet is not None
                available = self.available_balance(wallet)
                if amount_cents > available:
                    raise InsufficientBalance(amount_cents, available)
                txn = self.append(
                    wallet.id,
                    LedgerEntry(
                        type=TransactionType.PAYOUT,
                        amount_cents=amount_cents,
                        currency=wallet.currency,
                        description="Prelievo",
                    ),
                )
                return self.mark_processing(txn.id)

    # Helpers

    @contextmanager
    def _locked(self, key: str) -> Iterator[None]:
        """Entity lock held until the enclosing transaction commits or rolls back."""
        self.hold_until_commit(self.locks, key)
        yield

    def _check_amounts(self, entry: LedgerEntry) -> None:
        for value in (
            entry.amount_cents,
            entry.gross_amount_cents,
            entry.platform_fee_cents,
            entry.net_amount_cents,
        ):
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidAmount(value)

        gross, fee, net = entry.gross_amount_cents, entry.platform_fee_cents, entry.net_amount_cents
        if gross is not None and fee is not None and net is not None:
            if net != max(0, gross - fee):
                raise InvalidAmount(net)
        if net is not None and entry.amount_cents != net:
            raise InvalidAmount(entry.amount_cents)
        if entry.type == TransactionType.LESSON_PAYMENT and net is None:
            raise InvalidAmount(entry.amount_cents)

    def _get_transaction(self, transaction_id: str) -> WalletTransaction:
        txn = self.transaction_repository.get_by_id(transaction_id)
        if txn is None:
            raise TransactionNotFound(transaction_id)
        return txn

    def _get_transaction_for_update(self, transaction_id: str) -> WalletTransaction:
        txn = self.transaction_repository.get_for_update(transaction_id)
        if txn is None:
            raise TransactionNotFound(transaction_id)
        return txn

    @staticmethod
    def _require_status(txn: WalletTransaction, target: TransactionStatus, allowed) -> None:
        if txn.transaction_status not in allowed:
            raise InvalidTransition(
                txn.transaction_status, target, f"transaction {txn.id} is {txn.status}"
            )
