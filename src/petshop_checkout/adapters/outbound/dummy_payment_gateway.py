from __future__ import annotations

import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Deque, Dict

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    GatewayError,
    NetworkError,
)
from petshop_checkout.core.domain.model.money import now_utc
from petshop_checkout.core.domain.model.payment import (
    PaymentSession,
    PaymentSessionStatus,
)
from petshop_checkout.core.ports.outbound.payment_gateway import (
    PaymentGateway,
    SessionRequest,
)


@dataclass
class DummyPaymentGateway(PaymentGateway):
    """
    Local stand-in for the hosted checkout. Sessions stay PENDING until
    ``settle`` is called; ``scripted_errors`` are returned by the next status
    calls, in order, before the real status.
    """

    checkout_base_url: str = "https://checkout.example.test"
    max_amount: Decimal = Decimal("1000000.00")
    offline: bool = False
    clock: Callable[[], datetime] = now_utc
    scripted_errors: Deque[CheckoutError] = field(default_factory=deque)
    status_calls: int = 0
    _status: Dict[str, PaymentSessionStatus] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def create_session(
        self, request: SessionRequest
    ) -> Result[PaymentSession, CheckoutError]:
        if self.offline:
            return Failure(NetworkError(message="gateway unreachable"))
        if request.amount.amount > self.max_amount:
            return Failure(GatewayError(message="amount too large"))

        ref = f"cs_{uuid.uuid4().hex[:24]}"
        with self._lock:
            self._status[ref] = PaymentSessionStatus.PENDING
        return Success(
            PaymentSession(
                gateway_ref=ref,
                order_id=request.order_id,
                payment_url=f"{self.checkout_base_url}/pay/{ref}",
                amount=request.amount,
                status=PaymentSessionStatus.PENDING,
                created_at=self.clock(),
            )
        )

    def get_session_status(
        self, gateway_ref: str
    ) -> Result[PaymentSessionStatus, CheckoutError]:
        with self._lock:
            self.status_calls += 1
            if self.scripted_errors:
                return Failure(self.scripted_errors.popleft())
            if self.offline:
                return Failure(NetworkError(message="gateway unreachable"))
            status = self._status.get(gateway_ref)
        if status is None:
            return Failure(GatewayError(message=f"unknown session: {gateway_ref}"))
        return Success(status)

    def settle(self, gateway_ref: str, status: PaymentSessionStatus) -> None:
        with self._lock:
            self._status[gateway_ref] = status
