from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Sequence

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.money import now_utc
from petshop_checkout.core.domain.model.order import Order, OrderStatus, PendingReason
from petshop_checkout.core.domain.service.gateway_settlement import GatewaySettlement
from petshop_checkout.core.domain.service.order_ledger import OrderLedger
from petshop_checkout.core.ports.inbound.reconcile import (
    ReconcileUseCase,
    ReconciliationReport,
)
from petshop_checkout.core.ports.outbound.invoices import InvoiceRepository
from petshop_checkout.core.ports.outbound.orders import OrderRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationDeps:
    orders: OrderRepository
    invoices: InvoiceRepository
    ledger: OrderLedger
    gateway: GatewaySettlement
    stale_after_seconds: float = 600.0
    clock: Callable[[], datetime] = now_utc


@dataclass(frozen=True)
class ReconciliationService(ReconcileUseCase):
    """
    Repairs what a crash between two steps can leave behind:

    1. gateway orders still pending after the polling window are checked with
       the gateway once more;
    2. PAID and PENDING_PAYMENT orders without an invoice get one;
    3. every stored order and invoice is audited against the total formula.
       Mismatches are reported, never rewritten.
    """

    deps: ReconciliationDeps

    def reconcile(self) -> Result[ReconciliationReport, CheckoutError]:
        pending = self.deps.orders.find_by_status(OrderStatus.PENDING_PAYMENT)
        if isinstance(pending, Failure):
            return pending

        checked, settled = self._sweep_gateway(pending.unwrap())

        issued = 0
        for status in (OrderStatus.PAID, OrderStatus.PENDING_PAYMENT):
            orders = self.deps.orders.find_by_status(status)
            if isinstance(orders, Failure):
                return orders
            for order in orders.unwrap():
                issued += self._ensure_invoice(order)

        inconsistent = self._audit()
        if isinstance(inconsistent, Failure):
            return inconsistent

        report = ReconciliationReport(
            gateway_orders_checked=checked,
            gateway_orders_settled=settled,
            invoices_issued=issued,
            inconsistent_records=inconsistent.unwrap(),
        )
        logger.info(
            "Reconciliation finished",
            extra={
                "gateway_orders_checked": checked,
                "gateway_orders_settled": settled,
                "invoices_issued": issued,
                "inconsistent": len(report.inconsistent_records),
            },
        )
        return Success(report)

    def _sweep_gateway(self, orders: Sequence[Order]) -> tuple[int, int]:
        cutoff = self.deps.clock() - timedelta(seconds=self.deps.stale_after_seconds)
        checked = settled = 0
        for order in orders:
            if order.pending_reason is not PendingReason.AWAITING_GATEWAY:
                continue
            if order.updated_at > cutoff:
                continue
            checked += 1
            polled = self.deps.gateway.poll(str(order.order_id))
            if isinstance(polled, Failure):
                logger.warning(
                    "Stale gateway order not resolved",
                    extra={"order_id": str(order.order_id), "error": str(polled.failure())},
                )
                continue
            if polled.unwrap().status.is_terminal:
                settled += 1
        return checked, settled

    def _ensure_invoice(self, order: Order) -> int:
        found = self.deps.invoices.find_by_order(order.order_id)
        if isinstance(found, Failure):
            logger.warning(
                "Invoice lookup failed",
                extra={"order_id": str(order.order_id), "error": str(found.failure())},
            )
            return 0

        existing = found.unwrap()
        needs_paid_mark = (
            existing is not None and order.status is OrderStatus.PAID and not existing.is_paid
        )
        if existing is not None and not needs_paid_mark:
            return 0

        finalized = self.deps.ledger.finalize(order)
        if isinstance(finalized, Failure):
            logger.warning(
                "Invoice not repaired",
                extra={"order_id": str(order.order_id), "error": str(finalized.failure())},
            )
            return 0
        logger.info("Invoice repaired", extra={"order_id": str(order.order_id)})
        return 1

    def _audit(self) -> Result[tuple[str, ...], CheckoutError]:
        bad: list[str] = []
        for status in OrderStatus:
            orders = self.deps.orders.find_by_status(status)
            if isinstance(orders, Failure):
                return orders
            for order in orders.unwrap():
                if isinstance(self.deps.ledger.verify_order(order), Failure):
                    bad.append(str(order.order_id))

        invoices = self.deps.invoices.list()
        if isinstance(invoices, Failure):
            return invoices
        for invoice in invoices.unwrap():
            if isinstance(self.deps.ledger.verify_invoice(invoice), Failure):
                bad.append(invoice.invoice_number)

        return Success(tuple(bad))
