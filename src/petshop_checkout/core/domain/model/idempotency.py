from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from petshop_checkout.core.domain.model.order import OrderId

IdempotencyStatus = Literal["IN_PROGRESS", "COMPLETED", "FAILED"]


@dataclass(frozen=True)
class IdempotencyRecord:
    status: IdempotencyStatus
    order_id: OrderId
    request_hash: str
    started_at: datetime
    updated_at: datetime
    previous_error: str | None = None
