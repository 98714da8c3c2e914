# moveup/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. The lock registry and
payment gateway are process-wide; services are built per request around
the request's session.
"""

from datetime import timedelta
from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...core.entity_lock import EntityLockRegistry
from ...integrations.payment_gateway import PaymentGateway, build_payment_gateway
from ...services.booking_lifecycle_service import BookingLifecycleService
from ...services.wallet_ledger_service import WalletLedgerService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_lock_registry() -> EntityLockRegistry:
    """Get singleton entity lock registry."""
    return EntityLockRegistry.from_url(
        settings.redis_url,
        timeout_s=settings.lock_timeout_seconds,
        ttl_s=settings.lock_ttl_seconds,
    )


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGateway:
    """Get singleton payment gateway adapter selected by configuration."""
    gateway = build_payment_gateway(settings)
    logger.info("Payment gateway: %s", type(gateway).__name__)
    return gateway


def get_wallet_ledger_service(
    db: Session = Depends(get_db),
    locks: EntityLockRegistry = Depends(get_lock_registry),
) -> WalletLedgerService:
    """Get WalletLedgerService instance with proper dependencies."""
    return WalletLedgerService(
        db,
        locks,
        currency=settings.currency,
        fee_schedule=settings.fee_schedule(),
    )


def get_booking_lifecycle_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    ledger: WalletLedgerService = Depends(get_wallet_ledger_service),
    locks: EntityLockRegistry = Depends(get_lock_registry),
) -> BookingLifecycleService:
    """
    Get booking lifecycle service instance.

    The ledger is resolved from the same request, so both share one session.
    """
    return BookingLifecycleService(
        db,
        gateway,
        ledger,
        locks,
        fee_schedule=settings.fee_schedule(),
        qr_early_window=timedelta(minutes=settings.qr_validation_early_minutes),
        currency=settings.currency,
    )
