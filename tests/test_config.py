"""Settings from the environment, and how bootstrap reads them."""

from __future__ import annotations

from decimal import Decimal

from petshop_checkout.adapters.outbound.dummy_payment_gateway import DummyPaymentGateway
from petshop_checkout.adapters.outbound.http_payment_gateway import HttpPaymentGateway
from petshop_checkout.bootstrap import build_adapters, build_pricing_engine
from petshop_checkout.config import Settings
from petshop_checkout.core.domain.model.money import Money


def test_defaults_without_environment():
    settings = Settings.from_env({})

    assert settings == Settings()
    assert settings.currency == "HKD"
    assert settings.free_shipping_threshold == Decimal("100")
    assert settings.poll_interval_seconds == 3.0
    assert settings.poll_timeout_seconds == 600.0


def test_environment_overrides():
    settings = Settings.from_env(
        {
            "PETSHOP_CURRENCY": "usd",
            "PETSHOP_BASE_SHIPPING_FEE": "7.50",
            "PETSHOP_FREE_SHIPPING_THRESHOLD": "250",
            "PETSHOP_FREE_DELIVERY_PREFIXES": "shipfree, zerodel ,",
            "PETSHOP_MEMBERSHIP_WAIVES_SHIPPING": "false",
            "PETSHOP_POLL_INTERVAL_SECONDS": "1.5",
            "PETSHOP_IDEMPOTENCY_TTL_SECONDS": "30",
            "PETSHOP_LOG_LEVEL": "debug",
            "PETSHOP_API_URL": "http://checkout.internal:8080",
            "PETSHOP_ADMIN_TOKEN": "s3cret",
        }
    )

    assert settings.currency == "USD"
    assert settings.base_shipping_fee == Decimal("7.50")
    assert settings.free_shipping_threshold == Decimal("250")
    assert settings.free_delivery_prefixes == ("SHIPFREE", "ZERODEL")
    assert settings.membership_waives_shipping is False
    assert settings.poll_interval_seconds == 1.5
    assert settings.idempotency_ttl_seconds == 30
    assert settings.log_level == "DEBUG"
    assert settings.api_base_url == "http://checkout.internal:8080"
    assert settings.admin_token == "s3cret"


def test_blank_values_fall_back_to_defaults():
    settings = Settings.from_env({"PETSHOP_BASE_SHIPPING_FEE": "  ", "PETSHOP_CURRENCY": ""})

    assert settings.base_shipping_fee == Settings().base_shipping_fee
    assert settings.currency == "HKD"


def test_pricing_engine_uses_configured_fees():
    engine = build_pricing_engine(
        Settings(
            currency="USD",
            base_shipping_fee=Decimal("7.5"),
            free_shipping_threshold=Decimal("250"),
        )
    )

    assert engine.currency == "USD"
    assert engine.base_fee == Money.of("7.50", "USD")
    assert engine.threshold == Money.of(250, "USD")


def test_gateway_choice_follows_base_url():
    local = build_adapters(Settings(), seed=False)
    remote = build_adapters(
        Settings(gateway_base_url="https://pay.example.test", gateway_api_key="k"), seed=False
    )

    assert isinstance(local.gateway, DummyPaymentGateway)
    assert isinstance(remote.gateway, HttpPaymentGateway)
    assert remote.gateway.api_key == "k"
    remote.gateway.close()


def test_demo_data_is_seeded():
    adapters = build_adapters(Settings())

    assert adapters.catalog.prices["dog-food-2kg"] == Decimal("45.00")
    assert adapters.coupons.find("welcome10").unwrap() is not None
    assert adapters.wallet.balances["c-1"] == Decimal("200.00")
