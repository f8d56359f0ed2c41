from __future__ import annotations

from typing import Protocol

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.idempotency import IdempotencyRecord
from petshop_checkout.core.domain.model.order import CustomerId, OrderId


class IdempotencyRepository(Protocol):
    """
    A real database puts a UNIQUE constraint on (customer_id, key) so that
    ``start`` is an INSERT where only the first writer wins.
    """

    def get(
        self, customer_id: CustomerId, key: str
    ) -> Result[IdempotencyRecord | None, CheckoutError]: ...

    def start(
        self,
        customer_id: CustomerId,
        key: str,
        order_id: OrderId,
        request_hash: str,
    ) -> Result[None, CheckoutError]:
        """Registers IN_PROGRESS when absent; fails when the key already exists."""
        ...

    def complete(
        self, customer_id: CustomerId, key: str
    ) -> Result[None, CheckoutError]: ...

    def fail(
        self, customer_id: CustomerId, key: str, previous_error: str
    ) -> Result[None, CheckoutError]: ...
