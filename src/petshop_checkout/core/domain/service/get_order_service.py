from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from returns.result import Failure, Result

from petshop_checkout.core.domain.model.errors import CheckoutError, ValidationError
from petshop_checkout.core.domain.model.invoice import Invoice
from petshop_checkout.core.domain.model.order import CustomerId, Order
from petshop_checkout.core.domain.service.order_ledger import (
    OrderLedger,
    parse_order_id,
)
from petshop_checkout.core.ports.inbound.get_order import (
    GetOrderQuery,
    GetOrderUseCase,
    ListOrdersQuery,
    ListOrdersUseCase,
)
from petshop_checkout.core.ports.outbound.orders import OrderRepository


@dataclass(frozen=True)
class GetOrderDeps:
    ledger: OrderLedger


@dataclass(frozen=True)
class GetOrderService(GetOrderUseCase):
    deps: GetOrderDeps

    def get_order(self, query: GetOrderQuery) -> Result[Order, CheckoutError]:
        return parse_order_id(query.order_id).bind(self.deps.ledger.get)

    def get_invoice(self, query: GetOrderQuery) -> Result[Invoice, CheckoutError]:
        return parse_order_id(query.order_id).bind(self.deps.ledger.invoice_for)


@dataclass(frozen=True)
class ListOrdersDeps:
    orders: OrderRepository


@dataclass(frozen=True)
class ListOrdersService(ListOrdersUseCase):
    """Customer order history, newest first."""

    deps: ListOrdersDeps

    def list_orders(
        self, query: ListOrdersQuery
    ) -> Result[Sequence[Order], CheckoutError]:
        if query.offset < 0:
            return Failure(ValidationError(message="offset must be >= 0"))
        if query.limit <= 0:
            return Failure(ValidationError(message="limit must be > 0"))
        if query.limit > 100:
            return Failure(ValidationError(message="limit must be <= 100"))

        customer: CustomerId | None = None
        if query.customer_id is not None:
            cid = query.customer_id.strip()
            if not cid:
                return Failure(
                    ValidationError(
                        message="customer_id must be non-empty when provided"
                    )
                )
            customer = CustomerId(cid)

        return self.deps.orders.list(query.offset, query.limit, customer_id=customer)
