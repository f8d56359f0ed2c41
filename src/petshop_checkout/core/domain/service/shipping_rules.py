from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from petshop_checkout.core.domain.model.coupon import CouponKind, CouponSpec
from petshop_checkout.core.domain.model.membership import MembershipTier, active_tier
from petshop_checkout.core.domain.model.money import Money
from petshop_checkout.core.domain.model.pricing import ShippingDecision, ShippingWaiver


@dataclass(frozen=True)
class ShippingRuleEvaluator:
    """
    Waiver rules in fixed precedence. The first rule that matches decides the
    reason shown to the customer; the remaining rules are not evaluated.
    """

    voucher_prefixes: tuple[str, ...] = ("FREEDEL", "FREESHIP")
    membership_waives_shipping: bool = True

    def recognizes_voucher(self, code: str | None) -> bool:
        if not code or not self.voucher_prefixes:
            return False
        alternatives = "|".join(re.escape(p.upper()) for p in self.voucher_prefixes)
        return re.fullmatch(rf"(?:{alternatives})[A-Z0-9-]+", code.strip().upper()) is not None

    def evaluate(
        self,
        cart_total: Money,
        coupon: CouponSpec | None,
        tier: MembershipTier | None,
        free_delivery_code: str | None,
        base_fee: Money,
        threshold: Money,
        now: datetime,
    ) -> ShippingDecision:
        rules: tuple[tuple[ShippingWaiver, Callable[[], bool]], ...] = (
            (ShippingWaiver.VOUCHER, lambda: self.recognizes_voucher(free_delivery_code)),
            (
                ShippingWaiver.COUPON,
                lambda: coupon is not None and coupon.kind is CouponKind.FREE_DELIVERY,
            ),
            (ShippingWaiver.THRESHOLD, lambda: cart_total >= threshold),
            (
                ShippingWaiver.MEMBERSHIP,
                lambda: self.membership_waives_shipping
                and active_tier(tier, now) is not None,
            ),
        )

        for reason, matches in rules:
            if matches():
                return ShippingDecision(fee=Money.zero(base_fee.currency), reason=reason)

        return ShippingDecision(fee=base_fee, reason=None)
