"""Mapping from Stripe PaymentIntent states onto booking payment statuses."""

from __future__ import annotations

from typing import Optional

from ..models.booking import PaymentStatus

STRIPE_TO_PAYMENT_STATUS = {
    "requires_capture": PaymentStatus.AUTHORIZED,
    "succeeded": PaymentStatus.CAPTURED,
    "canceled": PaymentStatus.VOIDED,
    "cancelled": PaymentStatus.VOIDED,
    "requires_payment_method": PaymentStatus.FAILED,
    "requires_confirmation": PaymentStatus.PENDING,
    "requires_action": PaymentStatus.PENDING,
    "processing": PaymentStatus.PENDING,
}


def map_stripe_status(stripe_status: Optional[str]) -> PaymentStatus:
    """Map a Stripe PaymentIntent status to a payment status; unknown means pending."""
    if not stripe_status:
        return PaymentStatus.PENDING
    return STRIPE_TO_PAYMENT_STATUS.get(stripe_status, PaymentStatus.PENDING)
