from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.coupon import (
    CouponQuote,
    CouponRecord,
    CouponSpec,
    normalize_code,
)
from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    InvalidCoupon,
    ValidationError,
)
from petshop_checkout.core.domain.model.money import Money, now_utc
from petshop_checkout.core.domain.service.pricing_engine import PricingEngine
from petshop_checkout.core.ports.inbound.validate_coupon import (
    ValidateCouponQuery,
    ValidateCouponUseCase,
)
from petshop_checkout.core.ports.outbound.coupons import CouponLookup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscountValidatorDeps:
    coupons: CouponLookup
    pricing: PricingEngine
    clock: Callable[[], datetime] = now_utc


@dataclass(frozen=True)
class DiscountValidator(ValidateCouponUseCase):
    """Remote coupon check. A rejection has no side effects and may be
    retried with another code; nothing is cached between requests."""

    deps: DiscountValidatorDeps

    def validate(
        self, code: str, order_amount: Money
    ) -> Result[CouponSpec, CheckoutError]:
        normalized = normalize_code(code or "")
        if not normalized:
            return Failure(ValidationError("coupon code is required"))

        now = self.deps.clock()
        return self.deps.coupons.find(normalized).bind(
            lambda record: _check(record, normalized, order_amount, now)
        )

    def validate_coupon(
        self, query: ValidateCouponQuery
    ) -> Result[CouponQuote, CheckoutError]:
        if query.order_amount < 0:
            return Failure(ValidationError("order_amount must be >= 0"))
        return self.quote(
            query.code, Money.of(query.order_amount, self.deps.pricing.currency)
        )

    def quote(self, code: str, order_amount: Money) -> Result[CouponQuote, CheckoutError]:
        return self.validate(code, order_amount).map(
            lambda spec: CouponQuote(
                coupon=spec,
                discount_amount=self.deps.pricing.apply_coupon(order_amount, spec).discount,
            )
        )


def _check(
    record: CouponRecord | None,
    code: str,
    order_amount: Money,
    now: datetime,
) -> Result[CouponSpec, CheckoutError]:
    if record is None or not record.is_active:
        return _reject(code, "Invalid coupon code")

    if now < record.valid_from or now > record.valid_until:
        return _reject(code, "Coupon has expired or is not yet valid")

    if record.usage_limit is not None and record.used_count >= record.usage_limit:
        return _reject(code, "Coupon usage limit reached")

    if record.min_order_amount is not None and order_amount.amount < record.min_order_amount:
        return _reject(
            code, f"Minimum order amount of {record.min_order_amount} required"
        )

    return Success(record.to_spec())


def _reject(code: str, message: str) -> Result[CouponSpec, CheckoutError]:
    logger.info("Coupon rejected", extra={"coupon_code": code, "reason": message})
    return Failure(InvalidCoupon(message=message, code=code))
