from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from petshop_checkout.core.domain.model.membership import TierName
from petshop_checkout.core.domain.model.money import Money, max_money


class ShippingWaiver(str, Enum):
    VOUCHER = "free delivery voucher"
    COUPON = "free delivery coupon"
    THRESHOLD = "order over threshold"
    MEMBERSHIP = "membership free shipping"


@dataclass(frozen=True)
class ShippingDecision:
    fee: Money
    reason: ShippingWaiver | None = None


def reconciled_total(
    subtotal: Money,
    coupon_discount: Money,
    membership_discount: Money,
    shipping_fee: Money,
) -> Money:
    goods = max_money(
        Money.zero(subtotal.currency), subtotal - coupon_discount - membership_discount
    )
    return goods + shipping_fee


@dataclass(frozen=True)
class PricingResult:
    subtotal: Money
    coupon_discount: Money
    membership_discount: Money
    shipping_fee: Money
    shipping_waiver_reason: ShippingWaiver | None
    total: Money
    coupon_code: str | None = None
    membership_tier: TierName | None = None
    free_delivery_code: str | None = None

    def reconciles(self) -> bool:
        return self.total == reconciled_total(
            self.subtotal,
            self.coupon_discount,
            self.membership_discount,
            self.shipping_fee,
        )
