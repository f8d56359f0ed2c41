from __future__ import annotations

import logging
from dataclasses import dataclass

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    GatewayError,
    NetworkError,
    ValidationError,
)
from petshop_checkout.core.domain.model.money import Money
from petshop_checkout.core.domain.model.order import Order, OrderStatus
from petshop_checkout.core.domain.model.payment import parse_gateway_status
from petshop_checkout.core.domain.model.settlement import SettlementOutcome
from petshop_checkout.core.domain.service.gateway_settlement import GatewaySettlement
from petshop_checkout.core.domain.service.manual_settlement import (
    ManualConfirmationSettlement,
)
from petshop_checkout.core.domain.service.order_ledger import (
    OrderLedger,
    parse_order_id,
)
from petshop_checkout.core.domain.service.wallet_settlement import WalletSettlement
from petshop_checkout.core.ports.inbound.payments import (
    CreatePaymentSessionCommand,
    GatewayNotification,
    PaymentStatusView,
    PaymentUseCase,
    WalletPaymentCommand,
)
from petshop_checkout.core.ports.outbound.payment_gateway import (
    PaymentSessionRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentServiceDeps:
    ledger: OrderLedger
    gateway: GatewaySettlement
    wallet: WalletSettlement
    manual: ManualConfirmationSettlement
    sessions: PaymentSessionRepository
    currency: str = "HKD"


@dataclass(frozen=True)
class PaymentService(PaymentUseCase):
    deps: PaymentServiceDeps

    def create_session(
        self, command: CreatePaymentSessionCommand
    ) -> Result[SettlementOutcome, CheckoutError]:
        if command.amount <= 0:
            return Failure(ValidationError(message="amount must be > 0"))
        currency = (command.currency or self.deps.currency).upper()
        return self.deps.gateway.create_session(
            command.order_id, Money.of(command.amount, currency)
        )

    def payment_status(self, order_id: str) -> Result[PaymentStatusView, CheckoutError]:
        got = parse_order_id(order_id).bind(self.deps.ledger.get)
        if isinstance(got, Failure):
            return got
        order = got.unwrap()

        if order.status is OrderStatus.PENDING_PAYMENT:
            # ask the gateway once; on error the stored status is returned
            polled = self.deps.gateway.poll(str(order.order_id))
            if isinstance(polled, Success):
                order = polled.unwrap()
            elif isinstance(polled.failure(), (GatewayError, NetworkError)):
                logger.warning(
                    "Payment status served from storage",
                    extra={"order_id": order_id, "error": str(polled.failure())},
                )

        found = self.deps.sessions.find_by_order(str(order.order_id))
        if isinstance(found, Failure):
            return found
        session = found.unwrap()
        return Success(
            PaymentStatusView(
                order_id=str(order.order_id),
                session_status=session.status if session is not None else None,
                order_status=order.status,
            )
        )

    def handle_notification(
        self, notification: GatewayNotification
    ) -> Result[Order, CheckoutError]:
        status = parse_gateway_status(notification.status)
        if status is None:
            return Failure(
                ValidationError(message=f"unknown session status: {notification.status}")
            )
        if not notification.gateway_ref.strip():
            return Failure(ValidationError(message="gateway_ref is required"))
        return self.deps.gateway.handle_webhook(notification.gateway_ref.strip(), status)

    def pay_with_wallet(
        self, command: WalletPaymentCommand
    ) -> Result[SettlementOutcome, CheckoutError]:
        if not command.user_id.strip():
            return Failure(ValidationError(message="user_id is required"))
        return self.deps.wallet.pay_with_wallet(command.order_id, command.user_id.strip())

    def confirm_manual(self, order_id: str) -> Result[SettlementOutcome, CheckoutError]:
        return self.deps.manual.confirm(order_id)

    def reject_manual(self, order_id: str) -> Result[SettlementOutcome, CheckoutError]:
        return self.deps.manual.reject(order_id)
