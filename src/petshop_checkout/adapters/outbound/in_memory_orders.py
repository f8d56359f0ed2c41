from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Sequence

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    InvalidStateTransition,
    OrderNotFound,
    PersistenceError,
)
from petshop_checkout.core.domain.model.order import (
    CustomerId,
    Order,
    OrderId,
    OrderStatus,
)
from petshop_checkout.core.ports.outbound.orders import OrderRepository


@dataclass
class InMemoryOrderRepository(OrderRepository):
    _store: Dict[str, Order] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def save(self, order: Order) -> Result[OrderId, CheckoutError]:
        key = str(order.order_id)
        with self._lock:
            if key in self._store:
                return Failure(PersistenceError(message="order_id already exists"))
            self._store[key] = order
        return Success(order.order_id)

    def get(self, order_id: OrderId) -> Result[Order, CheckoutError]:
        key = str(order_id)
        with self._lock:
            order = self._store.get(key)
        if order is None:
            return Failure(OrderNotFound(message="order not found", order_id=key))
        return Success(order)

    def update(
        self, order: Order, expected_status: OrderStatus
    ) -> Result[Order, CheckoutError]:
        key = str(order.order_id)
        with self._lock:
            current = self._store.get(key)
            if current is None:
                return Failure(OrderNotFound(message="order not found", order_id=key))
            if current.status is not expected_status:
                return Failure(
                    InvalidStateTransition(
                        message="order changed concurrently",
                        order_id=key,
                        current=current.status.value,
                        target=order.status.value,
                    )
                )
            self._store[key] = order
        return Success(order)

    def list(
        self,
        offset: int,
        limit: int,
        customer_id: CustomerId | None = None,
    ) -> Result[Sequence[Order], CheckoutError]:
        with self._lock:
            orders = list(self._store.values())

        if customer_id is not None:
            orders = [o for o in orders if o.customer_id.value == customer_id.value]

        orders = sorted(orders, key=lambda o: o.created_at, reverse=True)
        return Success(tuple(orders[offset : offset + limit]))

    def find_by_status(self, status: OrderStatus) -> Result[Sequence[Order], CheckoutError]:
        with self._lock:
            return Success(tuple(o for o in self._store.values() if o.status is status))

    def put(self, order: Order) -> None:
        """Overwrite without checks, for fixtures and data imports."""
        with self._lock:
            self._store[str(order.order_id)] = order
