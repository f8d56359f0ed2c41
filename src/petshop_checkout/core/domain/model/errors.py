from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CheckoutError(Exception):
    message: str

    def __str__(self) -> str:  # pragma: no cover
        return self.message


@dataclass(frozen=True)
class ValidationError(CheckoutError):
    pass


@dataclass(frozen=True)
class InvalidCoupon(CheckoutError):
    code: str

    def __str__(self) -> str:  # pragma: no cover
        return f"invalid_coupon: {self.code} ({self.message})"


@dataclass(frozen=True)
class InsufficientFunds(CheckoutError):
    balance: str
    required: str
    order_id: str | None = None

    def __str__(self) -> str:  # pragma: no cover
        return (
            f"insufficient_funds: balance={self.balance} required={self.required}"
            f" ({self.message})"
        )


@dataclass(frozen=True)
class GatewayError(CheckoutError):
    pass


@dataclass(frozen=True)
class NetworkError(CheckoutError):
    pass


@dataclass(frozen=True)
class InconsistentStateError(CheckoutError):
    record_id: str

    def __str__(self) -> str:  # pragma: no cover
        return f"inconsistent_state: {self.record_id} ({self.message})"


@dataclass(frozen=True)
class InvalidStateTransition(CheckoutError):
    order_id: str
    current: str
    target: str

    def __str__(self) -> str:  # pragma: no cover
        return (
            f"invalid_state_transition: {self.order_id} {self.current} -> {self.target}"
            f" ({self.message})"
        )


@dataclass(frozen=True)
class PersistenceError(CheckoutError):
    pass


@dataclass(frozen=True)
class OrderNotFound(PersistenceError):
    order_id: str

    def __str__(self) -> str:  # pragma: no cover
        return f"order_not_found: {self.order_id} ({self.message})"


@dataclass(frozen=True)
class InvoiceNotFound(PersistenceError):
    order_id: str

    def __str__(self) -> str:  # pragma: no cover
        return f"invoice_not_found: {self.order_id} ({self.message})"


@dataclass(frozen=True)
class PaymentSessionNotFound(PersistenceError):
    order_id: str

    def __str__(self) -> str:  # pragma: no cover
        return f"payment_session_not_found: {self.order_id} ({self.message})"


@dataclass(frozen=True)
class PublishError(CheckoutError):
    pass


@dataclass(frozen=True)
class IdempotencyInProgress(CheckoutError):
    key: str

    def __str__(self) -> str:  # pragma: no cover
        return f"idempotency_in_progress: {self.key} ({self.message})"


@dataclass(frozen=True)
class IdempotencyFailed(CheckoutError):
    key: str
    previous_error: str

    def __str__(self) -> str:  # pragma: no cover
        return f"idempotency_failed: {self.key} prev={self.previous_error} ({self.message})"


@dataclass(frozen=True)
class IdempotencyKeyConflict(CheckoutError):
    key: str

    def __str__(self) -> str:  # pragma: no cover
        return f"idempotency_key_conflict: {self.key} ({self.message})"


@dataclass(frozen=True)
class Unauthorized(CheckoutError):
    pass


@dataclass(frozen=True)
class ApiError(CheckoutError):
    """Error body returned by the checkout HTTP API to one of its clients."""

    error_type: str
    status_code: int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.error_type} (HTTP {self.status_code}): {self.message}"
