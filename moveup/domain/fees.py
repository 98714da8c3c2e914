"""
Platform fee math.

All amounts are integer cents. ``fee = round_half_up(gross * rate) + fixed``
and the instructor's net never goes below zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

from ..core.exceptions import InvalidAmount

CENT = Decimal("0.01")
ONE = Decimal("1")

AmountLike = Union[Decimal, int, float, str]


def to_cents(amount: AmountLike) -> int:
    """Convert a currency-unit amount into integer cents (half-up)."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount(amount) from exc
    if not value.is_finite():
        raise InvalidAmount(amount)
    return int((value * 100).quantize(ONE, rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents into a two-place Decimal amount."""
    return (Decimal(cents) / 100).quantize(CENT)


@dataclass(frozen=True)
class FeeSchedule:
    """Percentage plus fixed-fee pricing applied to every captured lesson."""

    rate: Decimal = Decimal("0.015")
    fixed_fee_cents: int = 25

    def __post_init__(self) -> None:
        rate = Decimal(str(self.rate))
        if rate < 0 or rate >= 1:
            raise ValueError("fee rate must be in [0, 1)")
        if self.fixed_fee_cents < 0:
            raise ValueError("fixed fee must be non-negative")
        object.__setattr__(self, "rate", rate)


DEFAULT_FEE_SCHEDULE = FeeSchedule()


@dataclass(frozen=True)
class FeeBreakdown:
    gross_amount_cents: int
    platform_fee_cents: int
    net_amount_cents: int
    fee_percentage: Optional[Decimal]

    @property
    def gross_amount(self) -> Decimal:
        return from_cents(self.gross_amount_cents)

    @property
    def platform_fee(self) -> Decimal:
        return from_cents(self.platform_fee_cents)

    @property
    def net_amount(self) -> Decimal:
        return from_cents(self.net_amount_cents)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gross_amount": self.gross_amount,
            "platform_fee": self.platform_fee,
            "net_amount": self.net_amount,
            "fee_percentage": self.fee_percentage,
        }


def calculate_fee(
    gross_amount_cents: int, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE
) -> FeeBreakdown:
    """Split a gross lesson price into platform fee and instructor net."""
    if isinstance(gross_amount_cents, bool) or not isinstance(gross_amount_cents, int):
        raise InvalidAmount(gross_amount_cents)
    if gross_amount_cents < 0:
        raise InvalidAmount(gross_amount_cents)

    variable = (Decimal(gross_amount_cents) * schedule.rate).quantize(ONE, rounding=ROUND_HALF_UP)
    fee = int(variable) + schedule.fixed_fee_cents
    net = max(0, gross_amount_cents - fee)

    percentage: Optional[Decimal] = None
    if gross_amount_cents > 0:
        percentage = (Decimal(fee) / Decimal(gross_amount_cents) * 100).quantize(
            CENT, rounding=ROUND_HALF_UP
        )

    return FeeBreakdown(
        gross_amount_cents=gross_amount_cents,
        platform_fee_cents=fee,
        net_amount_cents=net,
        fee_percentage=percentage,
    )
