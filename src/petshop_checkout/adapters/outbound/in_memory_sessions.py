from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict

from returns.result import Result, Success

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.payment import PaymentSession
from petshop_checkout.core.ports.outbound.payment_gateway import (
    PaymentSessionRepository,
)


@dataclass
class InMemoryPaymentSessionRepository(PaymentSessionRepository):
    # latest session per order; older sessions stay reachable by reference
    _by_ref: Dict[str, PaymentSession] = field(default_factory=dict)
    _latest_by_order: Dict[str, str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def save(self, session: PaymentSession) -> Result[PaymentSession, CheckoutError]:
        with self._lock:
            self._by_ref[session.gateway_ref] = session
            self._latest_by_order[session.order_id] = session.gateway_ref
        return Success(session)

    def find_by_order(self, order_id: str) -> Result[PaymentSession | None, CheckoutError]:
        with self._lock:
            ref = self._latest_by_order.get(order_id)
            return Success(self._by_ref.get(ref) if ref is not None else None)

    def find_by_ref(self, gateway_ref: str) -> Result[PaymentSession | None, CheckoutError]:
        with self._lock:
            return Success(self._by_ref.get(gateway_ref))
