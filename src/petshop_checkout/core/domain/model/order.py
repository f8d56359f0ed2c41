from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Tuple
from uuid import UUID, uuid4

from petshop_checkout.core.domain.model.cart import CartLine
from petshop_checkout.core.domain.model.money import Money
from petshop_checkout.core.domain.model.payment import PaymentMethod
from petshop_checkout.core.domain.model.pricing import PricingResult


@dataclass(frozen=True)
class OrderId:
    value: UUID

    @staticmethod
    def new() -> "OrderId":
        return OrderId(uuid4())

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class CustomerId:
    value: str


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    phone: str
    email: str


class OrderStatus(str, Enum):
    CREATED = "created"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


class PendingReason(str, Enum):
    AWAITING_GATEWAY = "awaiting_gateway"
    AWAITING_VERIFICATION = "awaiting_verification"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


_TERMINAL = frozenset({OrderStatus.PAID, OrderStatus.FAILED, OrderStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.CREATED: frozenset(
        {OrderStatus.PENDING_PAYMENT, OrderStatus.PAID, OrderStatus.CANCELLED}
    ),
    OrderStatus.PENDING_PAYMENT: frozenset(
        {OrderStatus.PAID, OrderStatus.FAILED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PAID: frozenset(),
    OrderStatus.FAILED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class Order:
    order_id: OrderId
    customer_id: CustomerId
    customer_info: CustomerInfo
    items: Tuple[CartLine, ...]
    pricing: PricingResult
    payment_method: PaymentMethod
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    pending_reason: PendingReason | None = None
    idempotency_key: str | None = None

    def total(self) -> Money:
        return self.pricing.total

    def can_transition_to(self, target: OrderStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

    def with_status(
        self,
        status: OrderStatus,
        at: datetime,
        pending_reason: PendingReason | None = None,
    ) -> "Order":
        # pending_reason only has meaning while PENDING_PAYMENT
        reason = pending_reason if status is OrderStatus.PENDING_PAYMENT else None
        return replace(self, status=status, pending_reason=reason, updated_at=at)
