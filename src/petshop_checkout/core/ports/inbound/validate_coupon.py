from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.coupon import CouponQuote


@dataclass(frozen=True)
class ValidateCouponQuery:
    code: str
    order_amount: Decimal


class ValidateCouponUseCase(Protocol):
    def validate_coupon(
        self, query: ValidateCouponQuery
    ) -> Result[CouponQuote, CheckoutError]: ...
