from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from petshop_checkout.core.domain.model.money import Money


class CouponKind(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    FREE_DELIVERY = "free_delivery"


@dataclass(frozen=True)
class CouponRecord:
    """A coupon as stored by the coupon service.

    ``value`` is a flat amount for FIXED coupons and percentage points for
    PERCENTAGE coupons. FREE_DELIVERY coupons carry a nominal value that is
    never subtracted from the order.
    """

    code: str
    kind: CouponKind
    value: Decimal
    valid_from: datetime
    valid_until: datetime
    min_order_amount: Decimal | None = None
    max_discount_amount: Decimal | None = None
    usage_limit: int | None = None
    used_count: int = 0
    is_active: bool = True

    def to_spec(self) -> "CouponSpec":
        return CouponSpec(
            code=self.code,
            kind=self.kind,
            amount=self.value,
            max_discount_amount=self.max_discount_amount,
        )


@dataclass(frozen=True)
class CouponSpec:
    code: str
    kind: CouponKind
    amount: Decimal
    max_discount_amount: Decimal | None = None


@dataclass(frozen=True)
class CouponQuote:
    coupon: CouponSpec
    discount_amount: Money


def normalize_code(code: str) -> str:
    return code.strip().upper()
