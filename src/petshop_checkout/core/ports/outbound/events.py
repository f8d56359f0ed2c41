from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.order import OrderId, OrderStatus


@dataclass(frozen=True)
class OrderCreated:
    order_id: OrderId
    total: str


@dataclass(frozen=True)
class OrderStatusChanged:
    order_id: OrderId
    previous: OrderStatus
    current: OrderStatus


OrderEvent = Union[OrderCreated, OrderStatusChanged]


class EventPublisher(Protocol):
    def publish(self, event: OrderEvent) -> Result[None, CheckoutError]: ...
