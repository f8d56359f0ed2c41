from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Tuple
from uuid import UUID

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.cart import CartLine
from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    InconsistentStateError,
    InvalidStateTransition,
    InvoiceNotFound,
    ValidationError,
)
from petshop_checkout.core.domain.model.invoice import (
    Invoice,
    InvoicePaymentStatus,
    new_invoice_number,
)
from petshop_checkout.core.domain.model.money import now_utc
from petshop_checkout.core.domain.model.order import (
    CustomerId,
    CustomerInfo,
    Order,
    OrderId,
    OrderStatus,
    PendingReason,
)
from petshop_checkout.core.domain.model.payment import PaymentMethod, method_kind
from petshop_checkout.core.domain.model.pricing import PricingResult
from petshop_checkout.core.ports.outbound.events import (
    EventPublisher,
    OrderCreated,
    OrderEvent,
    OrderStatusChanged,
)
from petshop_checkout.core.ports.outbound.invoices import InvoiceRepository
from petshop_checkout.core.ports.outbound.orders import OrderRepository

logger = logging.getLogger(__name__)

_INVOICEABLE = frozenset({OrderStatus.PAID, OrderStatus.PENDING_PAYMENT})


@dataclass(frozen=True)
class OrderLedgerDeps:
    orders: OrderRepository
    invoices: InvoiceRepository
    events: EventPublisher
    clock: Callable[[], datetime] = now_utc


@dataclass(frozen=True)
class OrderLedger:
    """
    Persists orders and their invoices.

    - The pricing snapshot is stored before any settlement attempt and never
      changes afterwards; only ``status`` moves.
    - Every record read or written is checked against
      ``total == max(0, subtotal - discounts) + shipping``. A record that fails
      the check is reported, never re-derived.
    - An invoice is issued at most once per order; a PAID invoice is final.
    """

    deps: OrderLedgerDeps

    # ---- orders ------------------------------------------------------------

    def create_order(
        self,
        order_id: OrderId,
        pricing: PricingResult,
        customer_id: CustomerId,
        customer_info: CustomerInfo,
        items: Tuple[CartLine, ...],
        payment_method: PaymentMethod,
        idempotency_key: str | None = None,
    ) -> Result[Order, CheckoutError]:
        if not pricing.reconciles():
            return _inconsistent(str(order_id), "pricing snapshot does not reconcile")

        now = self.deps.clock()
        order = Order(
            order_id=order_id,
            customer_id=customer_id,
            customer_info=customer_info,
            items=items,
            pricing=pricing,
            payment_method=payment_method,
            status=OrderStatus.CREATED,
            created_at=now,
            updated_at=now,
            idempotency_key=idempotency_key,
        )
        saved = self.deps.orders.save(order)
        if isinstance(saved, Failure):
            return saved

        logger.info(
            "Order created",
            extra={"order_id": str(order_id), "total": str(pricing.total.amount)},
        )
        self._publish(OrderCreated(order_id=order_id, total=str(pricing.total.amount)))
        return Success(order)

    def get(self, order_id: OrderId) -> Result[Order, CheckoutError]:
        return self.deps.orders.get(order_id).bind(self.verify_order)

    def transition(
        self,
        order: Order,
        target: OrderStatus,
        pending_reason: PendingReason | None = None,
    ) -> Result[Order, CheckoutError]:
        if order.status is target:
            return Success(order)

        if not order.can_transition_to(target):
            return Failure(
                InvalidStateTransition(
                    message="transition not allowed",
                    order_id=str(order.order_id),
                    current=order.status.value,
                    target=target.value,
                )
            )

        updated = order.with_status(target, self.deps.clock(), pending_reason)
        stored = self.deps.orders.update(updated, expected_status=order.status)
        if isinstance(stored, Failure):
            # lost a race: accept it only if the winner reached the same state
            current = self.deps.orders.get(order.order_id)
            if isinstance(current, Success) and current.unwrap().status is target:
                return current
            return stored

        logger.info(
            "Order status changed",
            extra={
                "order_id": str(order.order_id),
                "previous": order.status.value,
                "current": target.value,
            },
        )
        self._publish(
            OrderStatusChanged(
                order_id=order.order_id, previous=order.status, current=target
            )
        )
        return stored

    # ---- invoices ----------------------------------------------------------

    def finalize(self, order: Order) -> Result[Invoice, CheckoutError]:
        checked = self.verify_order(order)
        if isinstance(checked, Failure):
            return checked

        if order.status not in _INVOICEABLE:
            return Failure(
                InvalidStateTransition(
                    message="only paid or pending orders are invoiced",
                    order_id=str(order.order_id),
                    current=order.status.value,
                    target="invoiced",
                )
            )

        found = self.deps.invoices.find_by_order(order.order_id)
        if isinstance(found, Failure):
            return found

        existing = found.unwrap()
        if existing is None:
            return self.deps.invoices.save(self._issue(order))
        if existing.is_paid or order.status is not OrderStatus.PAID:
            return self.verify_invoice(existing)

        now = self.deps.clock()
        return self.verify_invoice(existing).bind(
            lambda inv: self.deps.invoices.replace(
                replace(inv, payment_status=InvoicePaymentStatus.PAID, paid_at=now)
            )
        )

    def invoice_for(self, order_id: OrderId) -> Result[Invoice, CheckoutError]:
        found = self.deps.invoices.find_by_order(order_id)
        if isinstance(found, Failure):
            return found
        invoice = found.unwrap()
        if invoice is None:
            return Failure(
                InvoiceNotFound(message="invoice not found", order_id=str(order_id))
            )
        return self.verify_invoice(invoice)

    # ---- invariants --------------------------------------------------------

    def verify_order(self, order: Order) -> Result[Order, CheckoutError]:
        if not order.pricing.reconciles():
            return _inconsistent(str(order.order_id), "order total does not reconcile")
        return Success(order)

    def verify_invoice(self, invoice: Invoice) -> Result[Invoice, CheckoutError]:
        if not invoice.reconciles():
            return _inconsistent(invoice.invoice_number, "invoice total does not reconcile")
        return Success(invoice)

    # ---- helpers -----------------------------------------------------------

    def _issue(self, order: Order) -> Invoice:
        now = self.deps.clock()
        paid = order.status is OrderStatus.PAID
        p = order.pricing
        return Invoice(
            invoice_number=new_invoice_number(now),
            order_id=order.order_id,
            customer_id=order.customer_id,
            customer_info=order.customer_info,
            items=order.items,
            subtotal=p.subtotal,
            discount=p.coupon_discount,
            membership_discount=p.membership_discount,
            shipping_fee=p.shipping_fee,
            total=p.total,
            payment_method=method_kind(order.payment_method),
            payment_status=(
                InvoicePaymentStatus.PAID if paid else InvoicePaymentStatus.PENDING
            ),
            issued_at=now,
            discount_code=p.coupon_code,
            membership_tier=p.membership_tier,
            free_delivery_code=p.free_delivery_code,
            paid_at=now if paid else None,
        )

    def _publish(self, event: OrderEvent) -> None:
        published = self.deps.events.publish(event)
        if isinstance(published, Failure):
            # the record is already durable; publish failures are only logged
            logger.warning(
                "Order event not published",
                extra={"event": type(event).__name__, "error": str(published.failure())},
            )


def _inconsistent(record_id: str, message: str) -> Result[Order, CheckoutError]:
    logger.error(
        "Inconsistent monetary record", extra={"record_id": record_id, "reason": message}
    )
    return Failure(InconsistentStateError(message=message, record_id=record_id))


def parse_order_id(raw: str) -> Result[OrderId, CheckoutError]:
    try:
        return Success(OrderId(UUID(str(raw).strip())))
    except ValueError:
        return Failure(ValidationError(message="order_id must be a valid UUID"))
