# moveup/core/exceptions.py
"""
Domain-specific exceptions for the MoveUp platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with the current state of a resource."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Money


class InvalidAmount(ValidationException):
    """Raised when a monetary amount is negative or not a number."""

    def __init__(self, amount: Any):
        super().__init__(
            message=f"Amount must be a non-negative number, got {amount!r}",
            code="INVALID_AMOUNT",
            details={"amount": str(amount)},
        )


# Booking lifecycle


class InvalidSchedule(ValidationException):
    """Raised when a booking is scheduled in the past."""

    def __init__(self, scheduled_at: Any, now: Any):
        super().__init__(
            message="Lessons cannot be booked in the past",
            code="INVALID_SCHEDULE",
            details={"scheduled_at": str(scheduled_at), "now": str(now)},
        )


class InvalidTransition(ConflictException):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, from_status: Any, to_status: Any, reason: Optional[str] = None):
        from_value = getattr(from_status, "value", from_status)
        to_value = getattr(to_status, "value", to_status)
        message = f"Cannot move from '{from_value}' to '{to_value}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="INVALID_TRANSITION",
            details={"from": from_value, "to": to_value},
        )
        self.from_status = from_status
        self.to_status = to_status


class NotAuthorized(ConflictException):
    """Raised when capturing a payment that was never authorized."""

    def __init__(self, booking_id: str, payment_status: Any):
        payment_value = getattr(payment_status, "value", payment_status)
        super().__init__(
            message=f"Payment for booking {booking_id} is not authorized",
            code="NOT_AUTHORIZED",
            details={"booking_id": booking_id, "payment_status": payment_value},
        )


class PaymentDeclined(DomainException):
    """Raised when the payment gateway refuses an authorization."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, booking_id: str, reason: Optional[str] = None):
        super().__init__(
            message=reason or "The payment was declined",
            code="PAYMENT_DECLINED",
            details={"booking_id": booking_id},
        )


class PaymentGatewayError(ServiceException):
    """Raised when the payment provider errors or is unreachable."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, operation: str, message: str):
        super().__init__(
            message=f"Payment provider failed during {operation}: {message}",
            code="PAYMENT_GATEWAY_ERROR",
            details={"operation": operation},
        )


# QR validation


class MalformedToken(ValidationException):
    """Raised when a scanned QR payload is not a MoveUp booking token."""

    def __init__(self, token: Any):
        super().__init__(
            message="QR code is not a valid MoveUp booking code",
            code="MALFORMED_TOKEN",
            details={"token": str(token)[:120]},
        )


class BookingMismatch(ValidationException):
    """Raised when a scanned QR code belongs to another booking."""

    def __init__(self, expected_booking_id: str, scanned_booking_id: str):
        super().__init__(
            message="QR code does not belong to this booking",
            code="BOOKING_MISMATCH",
            details={"expected": expected_booking_id, "scanned": scanned_booking_id},
        )


class AlreadyValidated(ConflictException):
    """Raised when a booking's QR code has already been scanned."""

    def __init__(self, booking_id: str, validated_at: Any):
        super().__init__(
            message="This lesson has already been validated",
            code="ALREADY_VALIDATED",
            details={"booking_id": booking_id, "validated_at": str(validated_at)},
        )


class NotEligible(BusinessRuleException):
    """Raised when a booking cannot be validated in its current state."""

    def __init__(self, booking_id: str, reason: str):
        super().__init__(
            message=f"Booking cannot be validated: {reason}",
            code="NOT_ELIGIBLE",
            details={"booking_id": booking_id},
        )


# Wallet ledger


class InvalidInitialStatus(ConflictException):
    """Raised when a transaction is appended in any status other than pending."""

    def __init__(self, status_value: Any):
        value = getattr(status_value, "value", status_value)
        super().__init__(
            message=f"Transactions must be appended as 'pending', got '{value}'",
            code="INVALID_INITIAL_STATUS",
            details={"status": value},
        )


class InvalidIban(ValidationException):
    """Raised when a bank account number fails validation."""

    def __init__(self) -> None:
        super().__init__(message="IBAN is not valid", code="INVALID_IBAN")


class BankAccountRequired(BusinessRuleException):
    """Raised when a payout is requested before bank details are set up."""

    def __init__(self, instructor_id: str):
        super().__init__(
            message="Set up a bank account before requesting a payout",
            code="BANK_ACCOUNT_REQUIRED",
            details={"instructor_id": instructor_id},
        )


class InsufficientBalance(BusinessRuleException):
    """Raised when a debit exceeds the wallet's available balance."""

    def __init__(self, requested_cents: int, available_cents: int):
        super().__init__(
            message="Requested amount exceeds the available balance",
            code="INSUFFICIENT_BALANCE",
            details={"requested_cents": requested_cents, "available_cents": available_cents},
        )


# Lookups


class BookingNotFound(NotFoundException):
    def __init__(self, booking_id: str):
        super().__init__(
            message=f"Booking {booking_id} not found",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )


class WalletNotFound(NotFoundException):
    def __init__(self, key: str):
        super().__init__(
            message=f"Wallet {key} not found",
            code="WALLET_NOT_FOUND",
            details={"wallet": key},
        )


class TransactionNotFound(NotFoundException):
    def __init__(self, transaction_id: str):
        super().__init__(
            message=f"Transaction {transaction_id} not found",
            code="TRANSACTION_NOT_FOUND",
            details={"transaction_id": transaction_id},
        )


# Concurrency


class EntityLockTimeout(ConflictException):
    """Raised when a per-entity lock cannot be acquired in time."""

    def __init__(self, key: str, timeout_s: float):
        super().__init__(
            message="Another operation on this resource is in progress, please retry",
            code="RESOURCE_BUSY",
            details={"key": key, "timeout_s": timeout_s},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
