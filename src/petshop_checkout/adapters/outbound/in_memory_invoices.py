from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Sequence

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    InvoiceNotFound,
    PersistenceError,
)
from petshop_checkout.core.domain.model.invoice import Invoice
from petshop_checkout.core.domain.model.order import CustomerId, OrderId
from petshop_checkout.core.ports.outbound.invoices import InvoiceRepository


@dataclass
class InMemoryInvoiceRepository(InvoiceRepository):
    _by_order: Dict[str, Invoice] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def save(self, invoice: Invoice) -> Result[Invoice, CheckoutError]:
        key = str(invoice.order_id)
        with self._lock:
            if key in self._by_order:
                return Failure(PersistenceError(message="order already has an invoice"))
            self._by_order[key] = invoice
        return Success(invoice)

    def find_by_order(self, order_id: OrderId) -> Result[Invoice | None, CheckoutError]:
        with self._lock:
            return Success(self._by_order.get(str(order_id)))

    def replace(self, invoice: Invoice) -> Result[Invoice, CheckoutError]:
        key = str(invoice.order_id)
        with self._lock:
            current = self._by_order.get(key)
            if current is None:
                return Failure(InvoiceNotFound(message="invoice not found", order_id=key))
            if current.is_paid:
                return Failure(PersistenceError(message="paid invoices are immutable"))
            if current.invoice_number != invoice.invoice_number:
                return Failure(PersistenceError(message="invoice number mismatch"))
            self._by_order[key] = invoice
        return Success(invoice)

    def list(
        self, customer_id: CustomerId | None = None
    ) -> Result[Sequence[Invoice], CheckoutError]:
        with self._lock:
            invoices = list(self._by_order.values())
        if customer_id is not None:
            invoices = [i for i in invoices if i.customer_id.value == customer_id.value]
        return Success(tuple(sorted(invoices, key=lambda i: i.issued_at, reverse=True)))

    def put(self, invoice: Invoice) -> None:
        """Overwrite without checks, for fixtures and data imports."""
        with self._lock:
            self._by_order[str(invoice.order_id)] = invoice
