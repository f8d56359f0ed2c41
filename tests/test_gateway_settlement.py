"""GatewaySettlement: hosted checkout sessions, polling and webhooks."""

from __future__ import annotations

from decimal import Decimal

import pytest
from returns.result import Failure

from petshop_checkout.core.domain.model.errors import (
    GatewayError,
    InvalidStateTransition,
    NetworkError,
    PaymentSessionNotFound,
    ValidationError,
)
from petshop_checkout.core.domain.model.invoice import InvoicePaymentStatus
from petshop_checkout.core.domain.model.order import OrderStatus, PendingReason
from petshop_checkout.core.domain.model.payment import PaymentSessionStatus
from petshop_checkout.core.ports.inbound.get_order import GetOrderQuery
from petshop_checkout.core.ports.inbound.payments import (
    CreatePaymentSessionCommand,
    GatewayNotification,
)
from petshop_checkout.core.ports.outbound.events import OrderStatusChanged


@pytest.fixture
def card_order(usecases, make_command):
    return usecases.place_order.place_order(make_command(method="card_gateway")).unwrap()


def session_ref(adapters, order) -> str:
    return adapters.sessions.find_by_order(str(order.order_id)).unwrap().gateway_ref


class TestCheckout:
    def test_order_waits_for_gateway(self, card_order, adapters):
        order = card_order.order

        assert order.status is OrderStatus.PENDING_PAYMENT
        assert order.pending_reason is PendingReason.AWAITING_GATEWAY
        assert card_order.payment_url == (
            f"https://checkout.example.test/pay/{session_ref(adapters, order)}"
        )
        assert card_order.invoice.payment_status is InvoicePaymentStatus.PENDING

    def test_session_amount_is_the_stored_total(self, card_order, adapters):
        session = adapters.sessions.find_by_order(str(card_order.order.order_id)).unwrap()

        assert session.amount == card_order.order.total()
        assert session.status is PaymentSessionStatus.PENDING

    def test_gateway_down_leaves_order_payable(self, usecases, adapters, make_command):
        adapters.gateway.offline = True

        result = usecases.place_order.place_order(make_command(method="card_gateway"))

        assert isinstance(result.failure(), NetworkError)
        (order,) = adapters.orders.list(0, 10).unwrap()
        assert order.status is OrderStatus.CREATED

        adapters.gateway.offline = False
        outcome = usecases.payments.create_session(
            CreatePaymentSessionCommand(order_id=str(order.order_id), amount=Decimal("60.00"))
        ).unwrap()

        assert outcome.order.status is OrderStatus.PENDING_PAYMENT
        assert outcome.payment_url is not None


class TestCreateSession:
    def test_pending_session_is_reused(self, usecases, card_order):
        outcome = usecases.payments.create_session(
            CreatePaymentSessionCommand(
                order_id=str(card_order.order.order_id), amount=Decimal("60")
            )
        ).unwrap()

        assert outcome.payment_url == card_order.payment_url

    def test_amount_must_match_stored_total(self, usecases, card_order):
        result = usecases.payments.create_session(
            CreatePaymentSessionCommand(
                order_id=str(card_order.order.order_id), amount=Decimal("1.00")
            )
        )

        assert isinstance(result.failure(), ValidationError)

    def test_amount_must_be_positive(self, usecases, card_order):
        result = usecases.payments.create_session(
            CreatePaymentSessionCommand(
                order_id=str(card_order.order.order_id), amount=Decimal("0")
            )
        )

        assert isinstance(result.failure(), ValidationError)

    def test_wallet_orders_have_no_session(self, usecases, make_command):
        receipt = usecases.place_order.place_order(make_command()).unwrap()

        result = usecases.payments.create_session(
            CreatePaymentSessionCommand(order_id=str(receipt.order.order_id), amount=Decimal("60"))
        )

        assert isinstance(result.failure(), ValidationError)

    def test_settled_order_cannot_open_a_session(self, usecases, adapters, card_order):
        adapters.gateway.settle(
            session_ref(adapters, card_order.order), PaymentSessionStatus.COMPLETED
        )
        usecases.payments.payment_status(str(card_order.order.order_id)).unwrap()

        result = usecases.payments.create_session(
            CreatePaymentSessionCommand(
                order_id=str(card_order.order.order_id), amount=Decimal("60")
            )
        )

        assert isinstance(result.failure(), InvalidStateTransition)


class TestStatus:
    def test_pending_session_keeps_order_pending(self, usecases, card_order):
        view = usecases.payments.payment_status(str(card_order.order.order_id)).unwrap()

        assert view.session_status is PaymentSessionStatus.PENDING
        assert view.order_status is OrderStatus.PENDING_PAYMENT

    def test_completed_session_pays_order_and_invoice(self, usecases, adapters, card_order):
        order_id = str(card_order.order.order_id)
        adapters.gateway.settle(
            session_ref(adapters, card_order.order), PaymentSessionStatus.COMPLETED
        )

        view = usecases.payments.payment_status(order_id).unwrap()
        invoice = usecases.get_order.get_invoice(GetOrderQuery(order_id=order_id)).unwrap()

        assert view.session_status is PaymentSessionStatus.COMPLETED
        assert view.order_status is OrderStatus.PAID
        assert invoice.invoice_number == card_order.invoice.invoice_number
        assert invoice.payment_status is InvoicePaymentStatus.PAID

    @pytest.mark.parametrize(
        "session_status, order_status",
        [
            (PaymentSessionStatus.FAILED, OrderStatus.FAILED),
            (PaymentSessionStatus.CANCELLED, OrderStatus.CANCELLED),
        ],
    )
    def test_unsuccessful_session(
        self, usecases, adapters, card_order, session_status, order_status
    ):
        adapters.gateway.settle(session_ref(adapters, card_order.order), session_status)

        view = usecases.payments.payment_status(str(card_order.order.order_id)).unwrap()

        assert view.order_status is order_status

    def test_transient_error_serves_stored_status(self, usecases, adapters, card_order):
        adapters.gateway.scripted_errors.append(NetworkError(message="timeout"))

        view = usecases.payments.payment_status(str(card_order.order.order_id)).unwrap()

        assert view.order_status is OrderStatus.PENDING_PAYMENT

    def test_poll_reports_gateway_errors(self, usecases, adapters, card_order):
        adapters.gateway.scripted_errors.append(GatewayError(message="HTTP 500"))

        result = usecases.payments.deps.gateway.poll(str(card_order.order.order_id))

        assert isinstance(result.failure(), GatewayError)

    def test_order_without_session(self, usecases, make_command):
        receipt = usecases.place_order.place_order(make_command()).unwrap()

        result = usecases.payments.deps.gateway.poll(str(receipt.order.order_id))

        assert isinstance(result.failure(), PaymentSessionNotFound)


class TestWebhook:
    def test_completed_notification_pays_once(self, usecases, adapters, card_order):
        ref = session_ref(adapters, card_order.order)
        note = GatewayNotification(gateway_ref=ref, status="COMPLETED")

        first = usecases.payments.handle_notification(note).unwrap()
        second = usecases.payments.handle_notification(note).unwrap()

        assert first.status is OrderStatus.PAID
        assert second.status is OrderStatus.PAID
        paid_events = [
            e
            for e in adapters.events.published
            if isinstance(e, OrderStatusChanged) and e.current is OrderStatus.PAID
        ]
        assert len(paid_events) == 1

    def test_late_success_does_not_revive_failed_order(self, usecases, adapters, card_order):
        ref = session_ref(adapters, card_order.order)
        usecases.payments.handle_notification(GatewayNotification(ref, "failed")).unwrap()

        order = usecases.payments.handle_notification(
            GatewayNotification(ref, "completed")
        ).unwrap()

        assert order.status is OrderStatus.FAILED

    def test_pending_notification_changes_nothing(self, usecases, adapters, card_order):
        ref = session_ref(adapters, card_order.order)

        order = usecases.payments.handle_notification(
            GatewayNotification(ref, "processing")
        ).unwrap()

        assert order.status is OrderStatus.PENDING_PAYMENT

    def test_unknown_status(self, usecases, adapters, card_order):
        ref = session_ref(adapters, card_order.order)

        result = usecases.payments.handle_notification(GatewayNotification(ref, "refunded"))

        assert isinstance(result.failure(), ValidationError)

    def test_unknown_reference(self, usecases, card_order):
        result = usecases.payments.handle_notification(
            GatewayNotification("cs_missing", "COMPLETED")
        )

        assert isinstance(result, Failure)
        assert isinstance(result.failure(), PaymentSessionNotFound)
