from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.order import (
    CustomerId,
    Order,
    OrderId,
    OrderStatus,
)


class OrderRepository(Protocol):
    def save(self, order: Order) -> Result[OrderId, CheckoutError]: ...

    def get(self, order_id: OrderId) -> Result[Order, CheckoutError]: ...

    def update(
        self, order: Order, expected_status: OrderStatus
    ) -> Result[Order, CheckoutError]:
        """Compare-and-set: stores ``order`` only while the stored status is
        still ``expected_status``."""
        ...

    def list(
        self,
        offset: int,
        limit: int,
        customer_id: CustomerId | None = None,
    ) -> Result[Sequence[Order], CheckoutError]: ...

    def find_by_status(
        self, status: OrderStatus
    ) -> Result[Sequence[Order], CheckoutError]: ...
