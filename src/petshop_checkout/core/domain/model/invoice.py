from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Tuple

from petshop_checkout.core.domain.model.cart import CartLine
from petshop_checkout.core.domain.model.membership import TierName
from petshop_checkout.core.domain.model.money import Money
from petshop_checkout.core.domain.model.order import CustomerId, CustomerInfo, OrderId
from petshop_checkout.core.domain.model.payment import PaymentMethodKind
from petshop_checkout.core.domain.model.pricing import reconciled_total

_BASE36 = string.digits + string.ascii_lowercase


class InvoicePaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


@dataclass(frozen=True)
class Invoice:
    invoice_number: str
    order_id: OrderId
    customer_id: CustomerId
    customer_info: CustomerInfo
    items: Tuple[CartLine, ...]
    subtotal: Money
    discount: Money
    membership_discount: Money
    # None for records written before the fee was stored explicitly
    shipping_fee: Money | None
    total: Money
    payment_method: PaymentMethodKind
    payment_status: InvoicePaymentStatus
    issued_at: datetime
    discount_code: str | None = None
    membership_tier: TierName | None = None
    free_delivery_code: str | None = None
    paid_at: datetime | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status is InvoicePaymentStatus.PAID

    def effective_shipping_fee(self) -> Money:
        if self.shipping_fee is not None:
            return self.shipping_fee
        return derive_shipping_fee(
            self.total, self.subtotal, self.discount, self.membership_discount
        )

    def reconciles(self) -> bool:
        return self.total == reconciled_total(
            self.subtotal,
            self.discount,
            self.membership_discount,
            self.effective_shipping_fee(),
        )


def derive_shipping_fee(
    total: Money, subtotal: Money, discount: Money, membership_discount: Money
) -> Money:
    return total - subtotal + discount + membership_discount


def new_invoice_number(now: datetime) -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"INV-{int(now.timestamp() * 1000)}-{suffix}"
