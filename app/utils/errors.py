"""Custom exception hierarchy for the marketplace API."""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class AppError(Exception):
    """Base application error with a stable machine-readable code."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error in the API standard shape."""
        return {"error": self.message, "code": self.code}


class InsufficientBalanceError(AppError):
    """Raised when an account cannot cover a debit; clients prompt a top-up."""

    def __init__(self, required: Decimal, available: Decimal | None = None) -> None:
        self.required = required
        self.available = available
        message = f"Insufficient balance: need {required}"
        if available is not None:
            message = f"{message}, have {available}"
        super().__init__(message=message, code="INSUFFICIENT_BALANCE", status_code=402)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["required"] = str(self.required)
        if self.available is not None:
            payload["available"] = str(self.available)
        return payload


class NotFoundError(AppError):
    """Raised when a requested resource does not exist."""

    def __init__(self, resource: str) -> None:
        super().__init__(message=f"{resource} not found", code="NOT_FOUND", status_code=404)


class NotEligibleError(AppError):
    """Raised when the moderation or ownership gate is not satisfied."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=reason, code="NOT_ELIGIBLE", status_code=403)


class ForbiddenError(AppError):
    """Raised when the user lacks permission for the action."""

    def __init__(self, reason: str = "You don't have permission") -> None:
        super().__init__(message=reason, code="FORBIDDEN", status_code=403)


class ConflictError(AppError):
    """Raised on duplicate/conflicting operations."""

    def __init__(self, reason: str, code: str = "CONFLICT") -> None:
        super().__init__(message=reason, code=code, status_code=409)


class AlreadyUnlockedError(ConflictError):
    """Raised when an account tries to buy a lead it already unlocked."""

    def __init__(self) -> None:
        super().__init__("You have already unlocked this lead", code="ALREADY_UNLOCKED")


class PaymentIncompleteError(ConflictError):
    """Raised when a checkout session is confirmed before it was paid."""

    def __init__(self) -> None:
        super().__init__("Payment not completed", code="PAYMENT_NOT_COMPLETED")


class UnauthorizedError(AppError):
    """Raised when the caller is not authenticated."""

    def __init__(self, reason: str = "Unauthorized") -> None:
        super().__init__(message=reason, code="UNAUTHORIZED", status_code=401)


class InvalidInputError(AppError):
    """Raised for request payload or parameter validation issues."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=reason, code="INVALID_INPUT", status_code=422)


class GatewayUnavailableError(AppError):
    """Raised when the payment gateway is misconfigured or unreachable.

    This is an operator problem, not a user mistake, so it maps to 503.
    """

    def __init__(self, reason: str = "Payment gateway unavailable") -> None:
        super().__init__(message=reason, code="GATEWAY_UNAVAILABLE", status_code=503)


class SignatureInvalidError(AppError):
    """Raised when a webhook payload fails authenticity verification."""

    def __init__(self, reason: str = "Signature verification failed") -> None:
        super().__init__(message=reason, code="SIGNATURE_INVALID", status_code=400)
