"""PricingEngine: subtotal, coupon, membership and total arithmetic."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from petshop_checkout.core.domain.model.cart import CartLine, CartSnapshot, ProductId
from petshop_checkout.core.domain.model.coupon import CouponKind, CouponSpec
from petshop_checkout.core.domain.model.invoice import derive_shipping_fee
from petshop_checkout.core.domain.model.membership import MembershipTier, TierName
from petshop_checkout.core.domain.model.money import Money
from petshop_checkout.core.domain.model.pricing import ShippingWaiver
from petshop_checkout.core.domain.service.pricing_engine import PricingEngine
from petshop_checkout.core.domain.service.shipping_rules import ShippingRuleEvaluator

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

GOLDEN = MembershipTier(
    tier_name=TierName.GOLDEN,
    percentage=Decimal("10"),
    expiry_date=NOW + timedelta(days=30),
)
PCT10 = CouponSpec(code="PCT10", kind=CouponKind.PERCENTAGE, amount=Decimal("10"))


def engine(membership_waives_shipping: bool = False) -> PricingEngine:
    return PricingEngine(
        shipping=ShippingRuleEvaluator(membership_waives_shipping=membership_waives_shipping),
        base_fee=Money.of(10),
        threshold=Money.of(100),
    )


def cart(*lines: tuple[str, int]) -> CartSnapshot:
    return CartSnapshot(
        lines=tuple(
            CartLine(product_id=ProductId(f"p-{i}"), unit_price=Money.of(price), quantity=qty)
            for i, (price, qty) in enumerate(lines)
        )
    )


class TestScenarios:
    def test_order_over_threshold_ships_free(self):
        result = engine().price(cart(("150.00", 1)), None, None, None, NOW)

        assert result.subtotal == Money.of(150)
        assert result.shipping_fee == Money.of(0)
        assert result.shipping_waiver_reason is ShippingWaiver.THRESHOLD
        assert result.shipping_waiver_reason.value == "order over threshold"
        assert result.total == Money.of(150)

    def test_coupon_then_membership_then_base_fee(self):
        result = engine().price(cart(("50.00", 1)), PCT10, GOLDEN, None, NOW)

        assert result.coupon_discount == Money.of("5.00")
        assert result.membership_discount == Money.of("4.50")
        assert result.shipping_fee == Money.of(10)
        assert result.shipping_waiver_reason is None
        assert result.total == Money.of("50.50")
        assert result.coupon_code == "PCT10"
        assert result.membership_tier is TierName.GOLDEN


class TestCoupons:
    def test_fixed_coupon_never_exceeds_subtotal(self):
        big = CouponSpec(code="BIG", kind=CouponKind.FIXED, amount=Decimal("80"))
        result = engine().price(cart(("25.00", 2)), big, None, None, NOW)

        assert result.coupon_discount == Money.of(50)
        assert result.total == Money.of(10)
        assert result.reconciles()

    def test_percentage_coupon_respects_cap(self):
        half = CouponSpec(
            code="HALF",
            kind=CouponKind.PERCENTAGE,
            amount=Decimal("50"),
            max_discount_amount=Decimal("30"),
        )
        applied = engine().apply_coupon(Money.of(200), half)

        assert applied.discount == Money.of(30)

    def test_free_delivery_coupon_leaves_money_untouched(self):
        ship = CouponSpec(code="SHIPFREE", kind=CouponKind.FREE_DELIVERY, amount=Decimal("0"))
        result = engine().price(cart(("12.50", 2)), ship, None, None, NOW)

        assert result.coupon_discount == Money.of(0)
        assert result.shipping_fee == Money.of(0)
        assert result.shipping_waiver_reason is ShippingWaiver.COUPON
        assert result.total == Money.of(25)

    def test_no_coupon_means_no_discount(self):
        applied = engine().apply_coupon(Money.of(80), None)

        assert applied.discount == Money.of(0)
        assert not applied.waives_shipping


class TestMembership:
    def test_discount_is_taken_from_post_coupon_amount(self):
        with_coupon = engine().price(cart(("50.00", 1)), PCT10, GOLDEN, None, NOW)
        without_coupon = engine().price(cart(("50.00", 1)), None, GOLDEN, None, NOW)

        assert without_coupon.membership_discount == Money.of("5.00")
        assert with_coupon.membership_discount == Money.of("4.50")

    def test_expired_tier_is_ignored(self):
        expired = MembershipTier(
            tier_name=TierName.DIAMOND,
            percentage=Decimal("15"),
            expiry_date=NOW - timedelta(days=1),
        )
        result = engine().price(cart(("50.00", 1)), None, expired, None, NOW)

        assert result.membership_discount == Money.of(0)
        assert result.membership_tier is None

    def test_tier_expiring_now_is_inert(self):
        at_now = MembershipTier(
            tier_name=TierName.SILVER, percentage=Decimal("5"), expiry_date=NOW
        )

        assert engine().compute_membership_discount(Money.of(50), at_now, NOW) == Money.of(0)

    def test_any_active_tier_waives_shipping_when_enabled(self):
        result = engine(membership_waives_shipping=True).price(
            cart(("50.00", 1)), None, GOLDEN, None, NOW
        )

        assert result.shipping_fee == Money.of(0)
        assert result.shipping_waiver_reason is ShippingWaiver.MEMBERSHIP
        assert result.total == Money.of(45)


class TestTotals:
    def test_amounts_round_half_up_to_cents(self):
        assert Money.of("12.50").percent(Decimal("5")) == Money.of("0.63")

    def test_every_combination_reconciles(self):
        coupons = (
            None,
            PCT10,
            CouponSpec(code="F", kind=CouponKind.FIXED, amount=Decimal("20")),
            CouponSpec(code="S", kind=CouponKind.FREE_DELIVERY, amount=Decimal("0")),
        )
        for items in (cart(("9.99", 1)), cart(("50.00", 1)), cart(("45.00", 3))):
            for coupon in coupons:
                for tier in (None, GOLDEN):
                    result = engine().price(items, coupon, tier, None, NOW)
                    assert result.reconciles()
                    assert result.total >= Money.of(0)
                    assert result.coupon_discount <= result.subtotal

    def test_fee_derived_from_stored_components_matches_engine(self):
        result = engine().price(cart(("50.00", 1)), PCT10, GOLDEN, None, NOW)

        derived = derive_shipping_fee(
            result.total, result.subtotal, result.coupon_discount, result.membership_discount
        )

        assert derived == result.shipping_fee
