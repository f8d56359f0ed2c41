from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.errors import CheckoutError, PublishError
from petshop_checkout.core.ports.outbound.events import (
    EventPublisher,
    OrderCreated,
    OrderEvent,
    OrderStatusChanged,
)

logger = logging.getLogger(__name__)


@dataclass
class LoggingEventPublisher(EventPublisher):
    fail: bool = False
    published: List[OrderEvent] = field(default_factory=list)

    def publish(self, event: OrderEvent) -> Result[None, CheckoutError]:
        if self.fail:
            return Failure(PublishError(message="publisher is down"))

        if isinstance(event, OrderCreated):
            logger.info(
                "event order_created",
                extra={"order_id": str(event.order_id), "total": event.total},
            )
        elif isinstance(event, OrderStatusChanged):
            logger.info(
                "event order_status_changed",
                extra={
                    "order_id": str(event.order_id),
                    "previous": event.previous.value,
                    "current": event.current.value,
                },
            )
        self.published.append(event)
        return Success(None)
