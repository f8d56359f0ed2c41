from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    InvalidStateTransition,
    PaymentSessionNotFound,
    ValidationError,
)
from petshop_checkout.core.domain.model.money import Money
from petshop_checkout.core.domain.model.order import Order, OrderStatus, PendingReason
from petshop_checkout.core.domain.model.payment import (
    CardGatewayPayment,
    PaymentSession,
    PaymentSessionStatus,
)
from petshop_checkout.core.domain.model.settlement import SettlementOutcome
from petshop_checkout.core.domain.service.order_ledger import (
    OrderLedger,
    parse_order_id,
)
from petshop_checkout.core.ports.outbound.payment_gateway import (
    PaymentGateway,
    PaymentSessionRepository,
    SessionRequest,
)

logger = logging.getLogger(__name__)

_ORDER_STATUS_FOR = {
    PaymentSessionStatus.COMPLETED: OrderStatus.PAID,
    PaymentSessionStatus.FAILED: OrderStatus.FAILED,
    PaymentSessionStatus.CANCELLED: OrderStatus.CANCELLED,
}


@dataclass(frozen=True)
class GatewaySettlementDeps:
    ledger: OrderLedger
    gateway: PaymentGateway
    sessions: PaymentSessionRepository


@dataclass(frozen=True)
class GatewaySettlement:
    """
    Hosted card checkout. ``settle`` hands the customer a payment URL and
    parks the order in PENDING_PAYMENT; the outcome arrives later through
    ``poll`` or a gateway webhook, both applied by ``apply``.
    """

    deps: GatewaySettlementDeps

    def settle(
        self, order: Order, method: CardGatewayPayment | None = None
    ) -> Result[SettlementOutcome, CheckoutError]:
        return self._session_for(order).bind(
            lambda session: self.deps.ledger.transition(
                order, OrderStatus.PENDING_PAYMENT, PendingReason.AWAITING_GATEWAY
            ).bind(
                lambda pending: self.deps.ledger.finalize(pending).map(
                    lambda invoice: SettlementOutcome(
                        order=pending, invoice=invoice, payment_url=session.payment_url
                    )
                )
            )
        )

    def create_session(
        self, order_id: str, amount: Money
    ) -> Result[SettlementOutcome, CheckoutError]:
        """Session for an existing order; ``amount`` must match what was stored."""
        return (
            parse_order_id(order_id)
            .bind(self.deps.ledger.get)
            .bind(lambda order: _matches_stored_total(order, amount))
            .bind(_awaiting_gateway)
            .bind(self.settle)
        )

    def poll(self, order_id: str) -> Result[Order, CheckoutError]:
        return self._session_by_order(order_id).bind(
            lambda session: self.deps.gateway.get_session_status(
                session.gateway_ref
            ).bind(lambda status: self._apply_session(session, status))
        )

    def handle_webhook(
        self, gateway_ref: str, status: PaymentSessionStatus
    ) -> Result[Order, CheckoutError]:
        found = self.deps.sessions.find_by_ref(gateway_ref)
        if isinstance(found, Failure):
            return found
        session = found.unwrap()
        if session is None:
            return Failure(
                PaymentSessionNotFound(
                    message="unknown gateway reference", order_id=gateway_ref
                )
            )
        logger.info(
            "Gateway notification received",
            extra={"gateway_ref": gateway_ref, "status": status.value},
        )
        return self._apply_session(session, status)

    def apply(
        self, order_id: str, status: PaymentSessionStatus
    ) -> Result[Order, CheckoutError]:
        """Moves the order to the outcome reported by the gateway.

        Safe to call any number of times from any source: a terminal order is
        returned as it is, and a PENDING report changes nothing.
        """
        return parse_order_id(order_id).bind(self.deps.ledger.get).bind(
            lambda order: self._apply_to(order, status)
        )

    # ---- helpers -----------------------------------------------------------

    def _apply_session(
        self, session: PaymentSession, status: PaymentSessionStatus
    ) -> Result[Order, CheckoutError]:
        if session.status is not status:
            saved = self.deps.sessions.save(replace(session, status=status))
            if isinstance(saved, Failure):
                return saved
        return self.apply(session.order_id, status)

    def _apply_to(
        self, order: Order, status: PaymentSessionStatus
    ) -> Result[Order, CheckoutError]:
        target = _ORDER_STATUS_FOR.get(status)
        if target is None or order.status.is_terminal:
            return Success(order)

        moved = self.deps.ledger.transition(order, target)
        if target is not OrderStatus.PAID:
            return moved
        return moved.bind(
            lambda paid: self.deps.ledger.finalize(paid).map(lambda _: paid)
        )

    def _session_for(self, order: Order) -> Result[PaymentSession, CheckoutError]:
        found = self.deps.sessions.find_by_order(str(order.order_id))
        if isinstance(found, Failure):
            return found

        existing = found.unwrap()
        if existing is not None and existing.status is PaymentSessionStatus.PENDING:
            return Success(existing)

        request = SessionRequest(
            order_id=str(order.order_id),
            amount=order.total(),
            customer=order.customer_info,
        )
        created = self.deps.gateway.create_session(request)
        if isinstance(created, Failure):
            logger.warning(
                "Payment session not created",
                extra={"order_id": str(order.order_id), "error": str(created.failure())},
            )
            return created

        logger.info(
            "Payment session created",
            extra={
                "order_id": str(order.order_id),
                "gateway_ref": created.unwrap().gateway_ref,
            },
        )
        return self.deps.sessions.save(created.unwrap())

    def _session_by_order(self, order_id: str) -> Result[PaymentSession, CheckoutError]:
        found = self.deps.sessions.find_by_order(order_id)
        if isinstance(found, Failure):
            return found
        session = found.unwrap()
        if session is None:
            return Failure(
                PaymentSessionNotFound(
                    message="no payment session for order", order_id=order_id
                )
            )
        return Success(session)


def _matches_stored_total(order: Order, amount: Money) -> Result[Order, CheckoutError]:
    if amount.currency != order.total().currency or amount.amount != order.total().amount:
        return Failure(
            ValidationError(message="amount does not match the order total")
        )
    return Success(order)


def _awaiting_gateway(order: Order) -> Result[Order, CheckoutError]:
    if not isinstance(order.payment_method, CardGatewayPayment):
        return Failure(ValidationError(message="order is not a card gateway order"))
    if order.status not in (OrderStatus.CREATED, OrderStatus.PENDING_PAYMENT):
        return Failure(
            InvalidStateTransition(
                message="order can no longer be paid",
                order_id=str(order.order_id),
                current=order.status.value,
                target=OrderStatus.PENDING_PAYMENT.value,
            )
        )
    return Success(order)
