"""Shared fixtures: an in-memory checkout wired the same way the service is."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Any, Callable

import pytest

from petshop_checkout.bootstrap import Adapters, UseCases, build_adapters, build_usecases
from petshop_checkout.config import Settings
from petshop_checkout.core.domain.model.coupon import CouponKind, CouponRecord
from petshop_checkout.core.domain.model.membership import MembershipTier, TierName
from petshop_checkout.core.domain.model.money import now_utc
from petshop_checkout.core.ports.inbound.place_order import (
    PaymentChoice,
    PlaceOrderCommand,
    PlaceOrderLine,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        base_shipping_fee=Decimal("10"),
        free_shipping_threshold=Decimal("100"),
        membership_waives_shipping=False,
        poll_interval_seconds=0.01,
        poll_timeout_seconds=1.0,
    )


@pytest.fixture
def adapters(settings: Settings) -> Adapters:
    adapters = build_adapters(settings, seed=False)
    now = now_utc()

    adapters.catalog.prices.update(
        {
            "kibble": Decimal("25.00"),
            "litter": Decimal("50.00"),
            "treats": Decimal("12.50"),
            "aquarium": Decimal("150.00"),
        }
    )
    for coupon in (
        CouponRecord(
            code="PCT10",
            kind=CouponKind.PERCENTAGE,
            value=Decimal("10"),
            valid_from=now - timedelta(days=1),
            valid_until=now + timedelta(days=30),
        ),
        CouponRecord(
            code="FLAT20",
            kind=CouponKind.FIXED,
            value=Decimal("20"),
            valid_from=now - timedelta(days=1),
            valid_until=now + timedelta(days=30),
            min_order_amount=Decimal("40"),
        ),
        CouponRecord(
            code="SHIPFREE",
            kind=CouponKind.FREE_DELIVERY,
            value=Decimal("0"),
            valid_from=now - timedelta(days=1),
            valid_until=now + timedelta(days=30),
        ),
    ):
        adapters.coupons.add(coupon)

    adapters.wallet.balances.update({"c-1": Decimal("500.00"), "c-2": Decimal("30.00")})
    adapters.membership.tiers_by_customer["c-2"] = MembershipTier(
        tier_name=TierName.GOLDEN,
        percentage=Decimal("10"),
        expiry_date=now + timedelta(days=365),
    )
    return adapters


@pytest.fixture
def usecases(settings: Settings, adapters: Adapters) -> UseCases:
    return build_usecases(settings, adapters)


@pytest.fixture
def make_command() -> Callable[..., PlaceOrderCommand]:
    """Builds a checkout command; defaults to two bags of kibble paid by wallet."""

    def build(
        method: str = "wallet",
        customer_id: str = "c-1",
        lines: tuple[tuple[str, int], ...] = (("kibble", 2),),
        **overrides: Any,
    ) -> PlaceOrderCommand:
        payment = overrides.pop("payment", None) or PaymentChoice(method=method)
        fields: dict[str, Any] = {
            "customer_id": customer_id,
            "customer_name": "Mei Chan",
            "customer_phone": "+852 5555 0101",
            "customer_email": "mei@example.com",
            "lines": tuple(PlaceOrderLine(product_id=p, quantity=q) for p, q in lines),
            "payment": payment,
        }
        fields.update(overrides)
        return PlaceOrderCommand(**fields)

    return build
