"""ManualConfirmationSettlement: attested transfers and QR payments."""

from __future__ import annotations

import pytest

from petshop_checkout.core.domain.model.errors import (
    InvalidStateTransition,
    OrderNotFound,
    ValidationError,
)
from petshop_checkout.core.domain.model.invoice import InvoicePaymentStatus
from petshop_checkout.core.domain.model.order import OrderId, OrderStatus, PendingReason
from petshop_checkout.core.domain.model.payment import (
    AttestedTransferPayment,
    PaymentMethodKind,
)
from petshop_checkout.core.domain.service.manual_settlement import validate_transfer_claim
from petshop_checkout.core.ports.inbound.place_order import PaymentChoice

TRANSFER = PaymentChoice(
    method="attested_transfer",
    reference="0x9f2c41aa7d",
    account_id="binance:884120",
    provider="binance",
)


@pytest.fixture
def transfer_receipt(usecases, make_command):
    return usecases.place_order.place_order(make_command(payment=TRANSFER)).unwrap()


@pytest.fixture
def qr_receipt(usecases, make_command):
    choice = PaymentChoice(method="self_attested_qr", provider="alipay")
    return usecases.place_order.place_order(make_command(payment=choice)).unwrap()


class TestClaims:
    def test_transfer_waits_for_verification(self, transfer_receipt):
        order = transfer_receipt.order

        assert order.status is OrderStatus.PENDING_PAYMENT
        assert order.pending_reason is PendingReason.AWAITING_VERIFICATION
        assert order.payment_method == AttestedTransferPayment(
            reference="0x9f2c41aa7d", account_id="binance:884120", provider="binance"
        )
        assert transfer_receipt.invoice.payment_status is InvoicePaymentStatus.PENDING
        assert transfer_receipt.invoice.payment_method is PaymentMethodKind.ATTESTED_TRANSFER

    def test_qr_waits_for_confirmation(self, qr_receipt):
        assert qr_receipt.order.status is OrderStatus.PENDING_PAYMENT
        assert qr_receipt.order.pending_reason is PendingReason.AWAITING_CONFIRMATION
        assert qr_receipt.payment_url is None

    def test_short_reference_is_refused_before_anything_is_stored(
        self, usecases, adapters, make_command
    ):
        choice = PaymentChoice(
            method="attested_transfer", reference="0x9f", account_id="binance:884120"
        )

        result = usecases.place_order.place_order(make_command(payment=choice))

        assert isinstance(result.failure(), ValidationError)
        assert adapters.orders.list(0, 10).unwrap() == ()

    def test_account_is_required(self):
        claim = AttestedTransferPayment(reference="0x9f2c41aa7d", account_id="  ")

        assert isinstance(validate_transfer_claim(claim).failure(), ValidationError)


class TestStaffDecision:
    def test_confirm_pays_order_and_invoice(self, usecases, transfer_receipt):
        outcome = usecases.payments.confirm_manual(
            str(transfer_receipt.order.order_id)
        ).unwrap()

        assert outcome.order.status is OrderStatus.PAID
        assert outcome.order.pending_reason is None
        assert outcome.invoice.invoice_number == transfer_receipt.invoice.invoice_number
        assert outcome.invoice.payment_status is InvoicePaymentStatus.PAID

    def test_reject_fails_order_and_keeps_invoice_pending(self, usecases, qr_receipt):
        outcome = usecases.payments.reject_manual(str(qr_receipt.order.order_id)).unwrap()

        assert outcome.order.status is OrderStatus.FAILED
        assert outcome.invoice.payment_status is InvoicePaymentStatus.PENDING

    def test_decision_is_final(self, usecases, qr_receipt):
        order_id = str(qr_receipt.order.order_id)
        usecases.payments.confirm_manual(order_id).unwrap()

        result = usecases.payments.reject_manual(order_id)

        assert isinstance(result.failure(), InvalidStateTransition)

    def test_gateway_orders_are_not_confirmed_by_staff(self, usecases, make_command):
        receipt = usecases.place_order.place_order(make_command(method="card_gateway")).unwrap()

        result = usecases.payments.confirm_manual(str(receipt.order.order_id))

        assert isinstance(result.failure(), InvalidStateTransition)

    def test_unknown_order(self, usecases):
        result = usecases.payments.confirm_manual(str(OrderId.new()))

        assert isinstance(result.failure(), OrderNotFound)
