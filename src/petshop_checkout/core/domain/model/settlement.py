from __future__ import annotations

from dataclasses import dataclass

from petshop_checkout.core.domain.model.invoice import Invoice
from petshop_checkout.core.domain.model.order import Order


@dataclass(frozen=True)
class SettlementOutcome:
    """Where an order stands after a settlement step."""

    order: Order
    invoice: Invoice | None = None
    payment_url: str | None = None
