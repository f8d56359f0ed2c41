from __future__ import annotations

from typing import Protocol

from returns.result import Result

from petshop_checkout.core.domain.model.coupon import CouponRecord
from petshop_checkout.core.domain.model.errors import CheckoutError


class CouponLookup(Protocol):
    def find(self, code: str) -> Result[CouponRecord | None, CheckoutError]: ...

    def record_redemption(self, code: str) -> Result[None, CheckoutError]: ...
