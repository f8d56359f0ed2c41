from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.invoice import Invoice
from petshop_checkout.core.domain.model.order import CustomerId, OrderId


class InvoiceRepository(Protocol):
    """
    One invoice per order. Implementations reject ``save`` for an order that
    already has an invoice and reject ``replace`` of an invoice already PAID.
    """

    def save(self, invoice: Invoice) -> Result[Invoice, CheckoutError]: ...

    def find_by_order(
        self, order_id: OrderId
    ) -> Result[Invoice | None, CheckoutError]: ...

    def replace(self, invoice: Invoice) -> Result[Invoice, CheckoutError]: ...

    def list(
        self, customer_id: CustomerId | None = None
    ) -> Result[Sequence[Invoice], CheckoutError]: ...
