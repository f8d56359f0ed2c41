from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.invoice import Invoice
from petshop_checkout.core.domain.model.order import Order


@dataclass(frozen=True)
class PlaceOrderLine:
    # prices come from the catalog; the client only says what and how many
    product_id: str
    quantity: int


@dataclass(frozen=True)
class PaymentChoice:
    method: str  # wallet | card_gateway | attested_transfer | self_attested_qr
    user_id: str | None = None
    reference: str | None = None
    account_id: str | None = None
    provider: str | None = None


@dataclass(frozen=True)
class PlaceOrderCommand:
    customer_id: str
    customer_name: str
    customer_phone: str
    customer_email: str
    lines: Sequence[PlaceOrderLine]
    payment: PaymentChoice
    coupon_code: str | None = None
    free_delivery_code: str | None = None
    idempotency_key: str | None = None


@dataclass(frozen=True)
class CheckoutReceipt:
    order: Order
    invoice: Invoice | None = None
    payment_url: str | None = None
    replayed: bool = False


class PlaceOrderUseCase(Protocol):
    def place_order(
        self, command: PlaceOrderCommand
    ) -> Result[CheckoutReceipt, CheckoutError]: ...
