"""Display names and colours for booking, payment and transaction states.

Presentation only: the domain entities never carry these strings.
"""

from __future__ import annotations

from typing import Dict, NamedTuple, Union

from ..models.booking import BookingStatus, PaymentStatus
from ..models.wallet import TransactionStatus, TransactionType


class StatusDisplay(NamedTuple):
    label: str
    color: str


BOOKING_STATUS_DISPLAY: Dict[BookingStatus, StatusDisplay] = {
    BookingStatus.PENDING: StatusDisplay("In attesa", "moveUpAccent1"),
    BookingStatus.CONFIRMED: StatusDisplay("Confermata", "moveUpSecondary"),
    BookingStatus.COMPLETED: StatusDisplay("Completata", "moveUpSuccess"),
    BookingStatus.CANCELLED: StatusDisplay("Cancellata", "moveUpError"),
    BookingStatus.NO_SHOW: StatusDisplay("Assente", "moveUpError"),
    BookingStatus.REFUNDED: StatusDisplay("Rimborsata", "moveUpError"),
}

PAYMENT_STATUS_DISPLAY: Dict[PaymentStatus, StatusDisplay] = {
    PaymentStatus.PENDING: StatusDisplay("In elaborazione", "orange"),
    PaymentStatus.AUTHORIZED: StatusDisplay("Autorizzato", "blue"),
    PaymentStatus.CAPTURED: StatusDisplay("Completato", "green"),
    PaymentStatus.REFUNDED: StatusDisplay("Rimborsato", "blue"),
    PaymentStatus.FAILED: StatusDisplay("Fallito", "red"),
    PaymentStatus.VOIDED: StatusDisplay("Annullato", "red"),
}

TRANSACTION_STATUS_DISPLAY: Dict[TransactionStatus, StatusDisplay] = {
    TransactionStatus.PENDING: StatusDisplay("In Attesa", "orange"),
    TransactionStatus.PROCESSING: StatusDisplay("In Elaborazione", "orange"),
    TransactionStatus.COMPLETED: StatusDisplay("Completato", "green"),
    TransactionStatus.FAILED: StatusDisplay("Fallito", "red"),
    TransactionStatus.REFUNDED: StatusDisplay("Rimborsato", "blue"),
    TransactionStatus.CANCELLED: StatusDisplay("Annullato", "red"),
}

TRANSACTION_TYPE_LABELS: Dict[TransactionType, str] = {
    TransactionType.LESSON_PAYMENT: "Pagamento Lezione",
    TransactionType.PAYOUT: "Prelievo",
    TransactionType.REFUND: "Rimborso",
    TransactionType.ADJUSTMENT: "Aggiustamento",
    TransactionType.BONUS: "Bonus",
}

DisplayableStatus = Union[BookingStatus, PaymentStatus, TransactionStatus]


def display_for(status: DisplayableStatus) -> StatusDisplay:
    """Look up the label/colour pair for any status enum."""
    if isinstance(status, BookingStatus):
        return BOOKING_STATUS_DISPLAY[status]
    if isinstance(status, PaymentStatus):
        return PAYMENT_STATUS_DISPLAY[status]
    return TRANSACTION_STATUS_DISPLAY[status]
