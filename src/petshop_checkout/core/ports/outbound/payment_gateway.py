from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.money import Money
from petshop_checkout.core.domain.model.order import CustomerInfo
from petshop_checkout.core.domain.model.payment import (
    PaymentSession,
    PaymentSessionStatus,
)


@dataclass(frozen=True)
class SessionRequest:
    order_id: str
    amount: Money
    customer: CustomerInfo


class PaymentGateway(Protocol):
    def create_session(
        self, request: SessionRequest
    ) -> Result[PaymentSession, CheckoutError]: ...

    def get_session_status(
        self, gateway_ref: str
    ) -> Result[PaymentSessionStatus, CheckoutError]: ...


class PaymentSessionRepository(Protocol):
    def save(self, session: PaymentSession) -> Result[PaymentSession, CheckoutError]: ...

    def find_by_order(
        self, order_id: str
    ) -> Result[PaymentSession | None, CheckoutError]: ...

    def find_by_ref(
        self, gateway_ref: str
    ) -> Result[PaymentSession | None, CheckoutError]: ...
