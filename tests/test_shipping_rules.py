"""ShippingRuleEvaluator: waiver precedence and voucher recognition."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from petshop_checkout.core.domain.model.coupon import CouponKind, CouponSpec
from petshop_checkout.core.domain.model.membership import MembershipTier, TierName
from petshop_checkout.core.domain.model.money import Money
from petshop_checkout.core.domain.model.pricing import ShippingWaiver
from petshop_checkout.core.domain.service.shipping_rules import ShippingRuleEvaluator

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
BASE_FEE = Money.of(10)
THRESHOLD = Money.of(100)

SHIP_COUPON = CouponSpec(code="SHIPFREE", kind=CouponKind.FREE_DELIVERY, amount=Decimal("0"))
SILVER = MembershipTier(
    tier_name=TierName.SILVER, percentage=Decimal("5"), expiry_date=NOW + timedelta(days=1)
)


def evaluate(
    cart_total: Money,
    coupon: CouponSpec | None = None,
    tier: MembershipTier | None = None,
    voucher: str | None = None,
):
    return ShippingRuleEvaluator().evaluate(
        cart_total, coupon, tier, voucher, base_fee=BASE_FEE, threshold=THRESHOLD, now=NOW
    )


class TestPrecedence:
    def test_voucher_wins_when_every_rule_matches(self):
        decision = evaluate(Money.of(150), SHIP_COUPON, SILVER, "FREEDEL-2024")

        assert decision.reason is ShippingWaiver.VOUCHER
        assert decision.fee == Money.of(0)

    def test_coupon_beats_threshold_and_membership(self):
        decision = evaluate(Money.of(150), SHIP_COUPON, SILVER)

        assert decision.reason is ShippingWaiver.COUPON

    def test_threshold_beats_membership(self):
        decision = evaluate(Money.of(150), None, SILVER)

        assert decision.reason is ShippingWaiver.THRESHOLD

    def test_threshold_is_inclusive(self):
        assert evaluate(Money.of(100)).reason is ShippingWaiver.THRESHOLD

    def test_membership_alone_waives(self):
        decision = evaluate(Money.of(20), None, SILVER)

        assert decision.reason is ShippingWaiver.MEMBERSHIP
        assert decision.fee == Money.of(0)

    def test_membership_waiver_can_be_switched_off(self):
        evaluator = ShippingRuleEvaluator(membership_waives_shipping=False)
        decision = evaluator.evaluate(
            Money.of(20), None, SILVER, None, base_fee=BASE_FEE, threshold=THRESHOLD, now=NOW
        )

        assert decision.reason is None
        assert decision.fee == BASE_FEE

    def test_no_rule_charges_base_fee(self):
        decision = evaluate(Money.of("99.99"))

        assert decision.reason is None
        assert decision.fee == BASE_FEE

    def test_non_delivery_coupon_does_not_waive(self):
        pct = CouponSpec(code="PCT10", kind=CouponKind.PERCENTAGE, amount=Decimal("10"))

        assert evaluate(Money.of(20), pct).reason is None


class TestVouchers:
    @pytest.mark.parametrize("code", ["FREEDEL-2024", "freeship42", "  FreeDel-X1 "])
    def test_known_prefixes_are_recognized(self, code):
        assert ShippingRuleEvaluator().recognizes_voucher(code)

    @pytest.mark.parametrize("code", [None, "", "FREEDEL", "WELCOME10", "FREEDEL 2024"])
    def test_other_codes_are_not(self, code):
        assert not ShippingRuleEvaluator().recognizes_voucher(code)

    def test_no_prefixes_recognizes_nothing(self):
        assert not ShippingRuleEvaluator(voucher_prefixes=()).recognizes_voucher("FREEDEL-1")
