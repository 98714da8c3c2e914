# moveup/routes/v1/wallet.py
"""
Instructor wallet routes - API v1

Endpoints:
    GET / - Wallet with balances and recent transactions
    POST /setup - Register the payout bank account
    GET /transactions - Paginated transaction history
    POST /calculate-fee - Fee breakdown for a lesson price
    POST /payouts - Request a withdrawal
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_wallet_ledger_service
from ...core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ...core.exceptions import DomainException
from ...domain.fees import calculate_fee, to_cents
from ...schemas.wallet import (
    FeeCalculationRequest,
    FeeCalculationResponse,
    PayoutRequest,
    TransactionHistoryResponse,
    TransactionResponse,
    WalletResponse,
    WalletSetupRequest,
)
from ...services.wallet_ledger_service import WalletLedgerService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["wallet-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _wallet_response(service: WalletLedgerService, instructor_id: str) -> WalletResponse:
    summary = service.get_summary(instructor_id)
    return WalletResponse.build(
        summary.wallet,
        available_balance_cents=summary.available_balance_cents,
        pending_earnings_cents=summary.pending_earnings_cents,
        recent_transactions=summary.recent_transactions,
    )


@router.get("", response_model=WalletResponse)
async def get_wallet(
    instructor_id: str = Query(..., min_length=1, max_length=64),
    service: WalletLedgerService = Depends(get_wallet_ledger_service),
) -> WalletResponse:
    try:
        return await asyncio.to_thread(_wallet_response, service, instructor_id)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/setup", response_model=WalletResponse)
async def setup_wallet(
    payload: WalletSetupRequest = Body(...),
    instructor_id: str = Query(..., min_length=1, max_length=64),
    service: WalletLedgerService = Depends(get_wallet_ledger_service),
) -> WalletResponse:
    """Store the payout bank account; the IBAN is kept masked only."""
    try:
        await asyncio.to_thread(
            service.setup_bank_account,
            instructor_id,
            iban=payload.iban,
            account_holder_name=payload.account_holder_name,
            country=payload.country,
        )
        return await asyncio.to_thread(_wallet_response, service, instructor_id)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/transactions", response_model=TransactionHistoryResponse)
async def list_transactions(
    instructor_id: str = Query(..., min_length=1, max_length=64),
    page: int = Query(1, ge=1),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    service: WalletLedgerService = Depends(get_wallet_ledger_service),
) -> TransactionHistoryResponse:
    try:
        result = await asyncio.to_thread(service.list_transactions, instructor_id, page, size)
        return TransactionHistoryResponse(
            transactions=[TransactionResponse.from_transaction(txn) for txn in result.items],
            total=result.total,
            page=result.page,
            size=result.size,
            has_more=result.has_more,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/calculate-fee", response_model=FeeCalculationResponse)
async def calculate_fee_preview(
    payload: FeeCalculationRequest = Body(...),
    service: WalletLedgerService = Depends(get_wallet_ledger_service),
) -> FeeCalculationResponse:
    """Platform fee and instructor net for a lesson price."""
    try:
        breakdown = calculate_fee(to_cents(payload.gross_amount), service.fee_schedule)
        return FeeCalculationResponse.from_breakdown(breakdown)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/payouts", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def request_payout(
    payload: PayoutRequest = Body(...),
    instructor_id: str = Query(..., min_length=1, max_length=64),
    service: WalletLedgerService = Depends(get_wallet_ledger_service),
) -> TransactionResponse:
    try:
        txn = await asyncio.to_thread(
            service.request_payout, instructor_id, to_cents(payload.amount)
        )
        return TransactionResponse.from_transaction(txn)
    except DomainException as e:
        handle_domain_exception(e)
