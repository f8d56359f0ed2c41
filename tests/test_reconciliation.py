"""ReconciliationService: repairing interrupted settlements and auditing totals."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest

from petshop_checkout.core.domain.model.invoice import InvoicePaymentStatus
from petshop_checkout.core.domain.model.money import Money, now_utc
from petshop_checkout.core.domain.model.order import OrderStatus, PendingReason
from petshop_checkout.core.domain.model.payment import PaymentSessionStatus
from petshop_checkout.core.domain.service.reconciliation_service import (
    ReconciliationDeps,
    ReconciliationService,
)


def reconciler(usecases, adapters, clock=now_utc) -> ReconciliationService:
    return ReconciliationService(
        ReconciliationDeps(
            orders=adapters.orders,
            invoices=adapters.invoices,
            ledger=usecases.payments.deps.ledger,
            gateway=usecases.payments.deps.gateway,
            stale_after_seconds=600,
            clock=clock,
        )
    )


@pytest.fixture
def unpaid_wallet_order(usecases, adapters, make_command):
    adapters.wallet.balances["c-1"] = Decimal("0")
    usecases.place_order.place_order(make_command())
    (order,) = adapters.orders.list(0, 10).unwrap()
    return order


class TestRepair:
    def test_nothing_to_do(self, usecases, adapters, make_command):
        usecases.place_order.place_order(make_command()).unwrap()

        report = reconciler(usecases, adapters).reconcile().unwrap()

        assert report.clean
        assert report.invoices_issued == 0
        assert report.gateway_orders_checked == 0

    def test_paid_order_without_invoice_gets_one(
        self, usecases, adapters, unpaid_wallet_order
    ):
        ledger = usecases.payments.deps.ledger
        ledger.transition(unpaid_wallet_order, OrderStatus.PAID).unwrap()

        report = reconciler(usecases, adapters).reconcile().unwrap()

        assert report.invoices_issued == 1
        invoice = ledger.invoice_for(unpaid_wallet_order.order_id).unwrap()
        assert invoice.payment_status is InvoicePaymentStatus.PAID
        assert invoice.total == unpaid_wallet_order.total()

    def test_pending_invoice_of_paid_order_is_marked_paid(
        self, usecases, adapters, unpaid_wallet_order
    ):
        ledger = usecases.payments.deps.ledger
        pending = ledger.transition(
            unpaid_wallet_order, OrderStatus.PENDING_PAYMENT, PendingReason.AWAITING_CONFIRMATION
        ).unwrap()
        issued = ledger.finalize(pending).unwrap()
        ledger.transition(pending, OrderStatus.PAID).unwrap()

        report = reconciler(usecases, adapters).reconcile().unwrap()

        assert report.invoices_issued == 1
        invoice = ledger.invoice_for(pending.order_id).unwrap()
        assert invoice.invoice_number == issued.invoice_number
        assert invoice.payment_status is InvoicePaymentStatus.PAID

    def test_second_run_has_nothing_left(self, usecases, adapters, unpaid_wallet_order):
        usecases.payments.deps.ledger.transition(unpaid_wallet_order, OrderStatus.PAID).unwrap()
        service = reconciler(usecases, adapters)

        service.reconcile().unwrap()
        report = service.reconcile().unwrap()

        assert report.invoices_issued == 0


class TestGatewaySweep:
    def test_stale_gateway_order_is_checked_again(self, usecases, adapters, make_command):
        receipt = usecases.place_order.place_order(make_command(method="card_gateway")).unwrap()
        session = adapters.sessions.find_by_order(str(receipt.order.order_id)).unwrap()
        adapters.gateway.settle(session.gateway_ref, PaymentSessionStatus.COMPLETED)
        later = reconciler(usecases, adapters, clock=lambda: now_utc() + timedelta(hours=1))

        report = later.reconcile().unwrap()

        assert report.gateway_orders_checked == 1
        assert report.gateway_orders_settled == 1
        stored = adapters.orders.get(receipt.order.order_id).unwrap()
        assert stored.status is OrderStatus.PAID

    def test_unresolved_order_stays_pending(self, usecases, adapters, make_command):
        receipt = usecases.place_order.place_order(make_command(method="card_gateway")).unwrap()
        later = reconciler(usecases, adapters, clock=lambda: now_utc() + timedelta(hours=1))

        report = later.reconcile().unwrap()

        assert report.gateway_orders_checked == 1
        assert report.gateway_orders_settled == 0
        stored = adapters.orders.get(receipt.order.order_id).unwrap()
        assert stored.status is OrderStatus.PENDING_PAYMENT

    def test_fresh_gateway_order_is_left_to_the_watcher(self, usecases, adapters, make_command):
        usecases.place_order.place_order(make_command(method="card_gateway")).unwrap()

        report = reconciler(usecases, adapters).reconcile().unwrap()

        assert report.gateway_orders_checked == 0


class TestAudit:
    def test_tampered_order_is_reported_not_rewritten(
        self, usecases, adapters, unpaid_wallet_order
    ):
        tampered = replace(
            unpaid_wallet_order,
            pricing=replace(unpaid_wallet_order.pricing, total=Money.of(1)),
        )
        adapters.orders.put(tampered)

        report = reconciler(usecases, adapters).reconcile().unwrap()

        assert not report.clean
        assert report.inconsistent_records == (str(tampered.order_id),)
        assert adapters.orders.get(tampered.order_id).unwrap() == tampered

    def test_tampered_invoice_is_reported(self, usecases, adapters, make_command):
        receipt = usecases.place_order.place_order(make_command()).unwrap()
        adapters.invoices.put(replace(receipt.invoice, total=Money.of("0.01")))

        report = reconciler(usecases, adapters).reconcile().unwrap()

        assert report.inconsistent_records == (receipt.invoice.invoice_number,)
