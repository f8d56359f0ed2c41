from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.errors import CheckoutError, PersistenceError
from petshop_checkout.core.domain.model.idempotency import IdempotencyRecord
from petshop_checkout.core.domain.model.money import now_utc
from petshop_checkout.core.domain.model.order import CustomerId, OrderId
from petshop_checkout.core.ports.outbound.idempotency import IdempotencyRepository


@dataclass
class InMemoryIdempotencyRepository(IdempotencyRepository):
    clock: Callable[[], datetime] = now_utc
    _store: dict[tuple[str, str], IdempotencyRecord] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get(
        self, customer_id: CustomerId, key: str
    ) -> Result[IdempotencyRecord | None, CheckoutError]:
        with self._lock:
            return Success(self._store.get((customer_id.value, key)))

    def start(
        self, customer_id: CustomerId, key: str, order_id: OrderId, request_hash: str
    ) -> Result[None, CheckoutError]:
        k = (customer_id.value, key)
        now = self.clock()
        with self._lock:
            if k in self._store:
                return Failure(PersistenceError(message="idempotency key already exists"))
            self._store[k] = IdempotencyRecord(
                status="IN_PROGRESS",
                order_id=order_id,
                request_hash=request_hash,
                started_at=now,
                updated_at=now,
            )
        return Success(None)

    def complete(self, customer_id: CustomerId, key: str) -> Result[None, CheckoutError]:
        return self._mark(customer_id, key, lambda rec, now: replace(
            rec, status="COMPLETED", updated_at=now
        ))

    def fail(
        self, customer_id: CustomerId, key: str, previous_error: str
    ) -> Result[None, CheckoutError]:
        return self._mark(customer_id, key, lambda rec, now: replace(
            rec, status="FAILED", updated_at=now, previous_error=previous_error
        ))

    def _mark(
        self,
        customer_id: CustomerId,
        key: str,
        change: Callable[[IdempotencyRecord, datetime], IdempotencyRecord],
    ) -> Result[None, CheckoutError]:
        k = (customer_id.value, key)
        now = self.clock()
        with self._lock:
            rec = self._store.get(k)
            if rec is None:
                return Failure(PersistenceError(message="idempotency key missing"))
            self._store[k] = change(rec, now)
        return Success(None)
