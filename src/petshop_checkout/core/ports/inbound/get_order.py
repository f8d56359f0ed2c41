from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.invoice import Invoice
from petshop_checkout.core.domain.model.order import Order


@dataclass(frozen=True)
class GetOrderQuery:
    order_id: str  # UUID string


@dataclass(frozen=True)
class ListOrdersQuery:
    offset: int = 0
    limit: int = 50
    customer_id: str | None = None


class GetOrderUseCase(Protocol):
    def get_order(self, query: GetOrderQuery) -> Result[Order, CheckoutError]: ...

    def get_invoice(self, query: GetOrderQuery) -> Result[Invoice, CheckoutError]: ...


class ListOrdersUseCase(Protocol):
    def list_orders(
        self, query: ListOrdersQuery
    ) -> Result[Sequence[Order], CheckoutError]: ...
