from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.order import Order, OrderStatus
from petshop_checkout.core.domain.model.payment import PaymentSessionStatus
from petshop_checkout.core.domain.model.settlement import SettlementOutcome


@dataclass(frozen=True)
class CreatePaymentSessionCommand:
    order_id: str
    amount: Decimal
    currency: str | None = None


@dataclass(frozen=True)
class WalletPaymentCommand:
    order_id: str
    user_id: str


@dataclass(frozen=True)
class GatewayNotification:
    gateway_ref: str
    status: str


@dataclass(frozen=True)
class PaymentStatusView:
    order_id: str
    session_status: PaymentSessionStatus | None
    order_status: OrderStatus


class PaymentUseCase(Protocol):
    def create_session(
        self, command: CreatePaymentSessionCommand
    ) -> Result[SettlementOutcome, CheckoutError]: ...

    def payment_status(self, order_id: str) -> Result[PaymentStatusView, CheckoutError]: ...

    def handle_notification(
        self, notification: GatewayNotification
    ) -> Result[Order, CheckoutError]: ...

    def pay_with_wallet(
        self, command: WalletPaymentCommand
    ) -> Result[SettlementOutcome, CheckoutError]: ...

    def confirm_manual(self, order_id: str) -> Result[SettlementOutcome, CheckoutError]: ...

    def reject_manual(self, order_id: str) -> Result[SettlementOutcome, CheckoutError]: ...
