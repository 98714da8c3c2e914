"""Wallet, ledger and fee schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator

from ..constants.booking_display import TRANSACTION_STATUS_DISPLAY, TRANSACTION_TYPE_LABELS
from ..domain.fees import FeeBreakdown, from_cents
from ..domain.iban import last_four
from ..models.wallet import TransactionStatus, TransactionType, Wallet, WalletTransaction
from ._strict_base import StrictModel, StrictRequestModel


def _maybe_amount(cents: Optional[int]) -> Optional[Decimal]:
    return None if cents is None else from_cents(cents)


class WalletSetupRequest(StrictRequestModel):
    iban: str = Field(..., min_length=15, max_length=64)
    account_holder_name: str = Field(..., min_length=1, max_length=255)
    country: str = Field("IT", min_length=2, max_length=2)

    @field_validator("country")
    @classmethod
    def _upper_country(cls, value: str) -> str:
        return value.upper()


class FeeCalculationRequest(StrictRequestModel):
    gross_amount: Decimal = Field(..., description="Lesson price in currency units")


class FeeCalculationResponse(StrictModel):
    gross_amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    fee_percentage: Optional[Decimal] = None

    @classmethod
    def from_breakdown(cls, breakdown: FeeBreakdown) -> "FeeCalculationResponse":
        return cls(**breakdown.to_dict())


class PayoutRequest(StrictRequestModel):
    amount: Decimal = Field(..., gt=0)


class TransactionResponse(StrictModel):
    id: str
    wallet_id: str
    type: TransactionType
    type_label: str
    status: TransactionStatus
    status_label: str
    amount: Decimal
    amount_cents: int
    signed_amount_cents: int
    currency: str
    gross_amount: Optional[Decimal] = None
    platform_fee: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    description: str
    booking_id: Optional[str] = None
    customer_id: Optional[str] = None
    related_transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None

    @classmethod
    def from_transaction(cls, txn: WalletTransaction) -> "TransactionResponse":
        kind = txn.transaction_type
        status = txn.transaction_status
        return cls(
            id=txn.id,
            wallet_id=txn.wallet_id,
            type=kind,
            type_label=TRANSACTION_TYPE_LABELS[kind],
            status=status,
            status_label=TRANSACTION_STATUS_DISPLAY[status].label,
            amount=from_cents(txn.amount_cents),
            amount_cents=txn.amount_cents,
            signed_amount_cents=txn.signed_amount_cents,
            currency=txn.currency,
            gross_amount=_maybe_amount(txn.gross_amount_cents),
            platform_fee=_maybe_amount(txn.platform_fee_cents),
            net_amount=_maybe_amount(txn.net_amount_cents),
            description=txn.description,
            booking_id=txn.booking_id,
            customer_id=txn.customer_id,
            related_transaction_id=txn.related_transaction_id,
            failure_reason=txn.failure_reason,
            created_at=txn.created_at,
            completed_at=txn.completed_at,
            failed_at=txn.failed_at,
        )


class TransactionHistoryResponse(StrictModel):
    transactions: List[TransactionResponse]
    total: int
    page: int
    size: int
    has_more: bool


class WalletResponse(StrictModel):
    id: str
    instructor_id: str
    currency: str
    balance: Decimal
    balance_cents: int
    available_balance: Decimal
    available_balance_cents: int
    pending_earnings: Decimal
    pending_earnings_cents: int
    total_earnings: Decimal
    total_lessons: int
    total_withdrawn: Decimal
    average_lesson_price: Decimal
    bank_account_setup: bool
    masked_iban: Optional[str] = None
    iban_last_four: Optional[str] = None
    account_holder_name: Optional[str] = None
    recent_transactions: List[TransactionResponse] = Field(default_factory=list)

    @classmethod
    def build(
        cls,
        wallet: Wallet,
        *,
        available_balance_cents: int,
        pending_earnings_cents: int,
        recent_transactions: Optional[List[WalletTransaction]] = None,
    ) -> "WalletResponse":
        return cls(
            id=wallet.id,
            instructor_id=wallet.instructor_id,
            currency=wallet.currency,
            balance=from_cents(wallet.balance_cents),
            balance_cents=wallet.balance_cents,
            available_balance=from_cents(available_balance_cents),
            available_balance_cents=available_balance_cents,
            pending_earnings=from_cents(pending_earnings_cents),
            pending_earnings_cents=pending_earnings_cents,
            total_earnings=from_cents(wallet.total_earnings_cents),
            total_lessons=wallet.total_lessons,
            total_withdrawn=from_cents(wallet.total_withdrawn_cents),
            average_lesson_price=from_cents(wallet.average_lesson_price_cents),
            bank_account_setup=wallet.bank_account_setup,
            masked_iban=wallet.masked_iban,
            iban_last_four=last_four(wallet.masked_iban) if wallet.masked_iban else None,
            account_holder_name=wallet.account_holder_name,
            recent_transactions=[
                TransactionResponse.from_transaction(txn) for txn in recent_transactions or []
            ],
        )
