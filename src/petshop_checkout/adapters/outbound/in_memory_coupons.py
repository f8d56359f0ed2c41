from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.coupon import CouponRecord, normalize_code
from petshop_checkout.core.domain.model.errors import CheckoutError, InvalidCoupon
from petshop_checkout.core.ports.outbound.coupons import CouponLookup


@dataclass
class InMemoryCouponLookup(CouponLookup):
    _by_code: Dict[str, CouponRecord] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def of(cls, coupons: Iterable[CouponRecord]) -> "InMemoryCouponLookup":
        return cls(_by_code={normalize_code(c.code): c for c in coupons})

    def add(self, coupon: CouponRecord) -> None:
        with self._lock:
            self._by_code[normalize_code(coupon.code)] = coupon

    def find(self, code: str) -> Result[CouponRecord | None, CheckoutError]:
        with self._lock:
            return Success(self._by_code.get(normalize_code(code)))

    def record_redemption(self, code: str) -> Result[None, CheckoutError]:
        key = normalize_code(code)
        with self._lock:
            record = self._by_code.get(key)
            if record is None:
                return Failure(InvalidCoupon(message="Invalid coupon code", code=key))
            self._by_code[key] = replace(record, used_count=record.used_count + 1)
        return Success(None)
