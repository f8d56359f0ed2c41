from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from petshop_checkout.core.domain.model.cart import CartLine, CartSnapshot
from petshop_checkout.core.domain.model.coupon import CouponKind, CouponSpec
from petshop_checkout.core.domain.model.membership import MembershipTier, active_tier
from petshop_checkout.core.domain.model.money import Money, fold_money, min_money
from petshop_checkout.core.domain.model.pricing import (
    PricingResult,
    ShippingDecision,
    reconciled_total,
)
from petshop_checkout.core.domain.service.shipping_rules import ShippingRuleEvaluator


@dataclass(frozen=True)
class CouponApplication:
    discount: Money
    waives_shipping: bool = False


@dataclass(frozen=True)
class PricingEngine:
    """
    The only place that decides how much an order costs.

    Pure computation over validated inputs: coupons reach this engine only
    after DiscountValidator accepted them, so nothing here fails.
    """

    shipping: ShippingRuleEvaluator
    base_fee: Money
    threshold: Money

    @property
    def currency(self) -> str:
        return self.base_fee.currency

    def compute_subtotal(self, items: Iterable[CartLine]) -> Money:
        return fold_money((it.subtotal() for it in items), currency=self.currency)

    def apply_coupon(self, subtotal: Money, coupon: CouponSpec | None) -> CouponApplication:
        if coupon is None:
            return CouponApplication(discount=Money.zero(self.currency))

        if coupon.kind is CouponKind.FIXED:
            flat = Money.of(coupon.amount, self.currency)
            return CouponApplication(discount=min_money(flat, subtotal))

        if coupon.kind is CouponKind.PERCENTAGE:
            discount = subtotal.percent(coupon.amount)
            if coupon.max_discount_amount is not None:
                discount = min_money(
                    discount, Money.of(coupon.max_discount_amount, self.currency)
                )
            return CouponApplication(discount=min_money(discount, subtotal))

        # FREE_DELIVERY: money untouched, shipping waiver decided downstream
        return CouponApplication(discount=Money.zero(self.currency), waives_shipping=True)

    def compute_membership_discount(
        self,
        post_coupon_subtotal: Money,
        tier: MembershipTier | None,
        now: datetime,
    ) -> Money:
        # computed on the post-coupon amount, never on the raw subtotal
        tier = active_tier(tier, now)
        if tier is None:
            return Money.zero(self.currency)
        return post_coupon_subtotal.percent(tier.percentage)

    def evaluate_shipping(
        self,
        cart_total: Money,
        coupon: CouponSpec | None,
        tier: MembershipTier | None,
        free_delivery_code: str | None,
        now: datetime,
    ) -> ShippingDecision:
        return self.shipping.evaluate(
            cart_total,
            coupon,
            tier,
            free_delivery_code,
            base_fee=self.base_fee,
            threshold=self.threshold,
            now=now,
        )

    def compute_final(
        self,
        subtotal: Money,
        coupon_discount: Money,
        membership_discount: Money,
        shipping_fee: Money,
    ) -> Money:
        return reconciled_total(subtotal, coupon_discount, membership_discount, shipping_fee)

    def price(
        self,
        cart: CartSnapshot,
        coupon: CouponSpec | None,
        tier: MembershipTier | None,
        free_delivery_code: str | None,
        now: datetime,
    ) -> PricingResult:
        subtotal = self.compute_subtotal(cart.lines)
        applied = self.apply_coupon(subtotal, coupon)
        membership_discount = self.compute_membership_discount(
            subtotal - applied.discount, tier, now
        )
        shipping = self.evaluate_shipping(subtotal, coupon, tier, free_delivery_code, now)
        total = self.compute_final(
            subtotal, applied.discount, membership_discount, shipping.fee
        )

        member = active_tier(tier, now)
        voucher = (
            free_delivery_code.strip().upper()
            if self.shipping.recognizes_voucher(free_delivery_code)
            else None
        )
        return PricingResult(
            subtotal=subtotal,
            coupon_discount=applied.discount,
            membership_discount=membership_discount,
            shipping_fee=shipping.fee,
            shipping_waiver_reason=shipping.reason,
            total=total,
            coupon_code=coupon.code if coupon is not None else None,
            membership_tier=member.tier_name if member is not None else None,
            free_delivery_code=voucher,
        )
