from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from petshop_checkout.adapters.outbound.dummy_payment_gateway import DummyPaymentGateway
from petshop_checkout.adapters.outbound.http_payment_gateway import HttpPaymentGateway
from petshop_checkout.adapters.outbound.in_memory_catalog import InMemoryPriceCatalog
from petshop_checkout.adapters.outbound.in_memory_coupons import InMemoryCouponLookup
from petshop_checkout.adapters.outbound.in_memory_idempotency import (
    InMemoryIdempotencyRepository,
)
from petshop_checkout.adapters.outbound.in_memory_invoices import (
    InMemoryInvoiceRepository,
)
from petshop_checkout.adapters.outbound.in_memory_membership import (
    InMemoryMembershipDirectory,
)
from petshop_checkout.adapters.outbound.in_memory_orders import InMemoryOrderRepository
from petshop_checkout.adapters.outbound.in_memory_sessions import (
    InMemoryPaymentSessionRepository,
)
from petshop_checkout.adapters.outbound.in_memory_wallet import InMemoryWalletService
from petshop_checkout.adapters.outbound.logging_events import LoggingEventPublisher
from petshop_checkout.config import Settings
from petshop_checkout.core.domain.model.coupon import CouponKind, CouponRecord
from petshop_checkout.core.domain.model.membership import (
    DEFAULT_TIER_PERCENTAGES,
    MembershipTier,
    TierName,
)
from petshop_checkout.core.domain.model.money import Money, now_utc
from petshop_checkout.core.domain.service.discount_validator import (
    DiscountValidator,
    DiscountValidatorDeps,
)
from petshop_checkout.core.domain.service.gateway_settlement import (
    GatewaySettlement,
    GatewaySettlementDeps,
)
from petshop_checkout.core.domain.service.gateway_watcher import GatewayStatusWatcher
from petshop_checkout.core.domain.service.get_order_service import (
    GetOrderDeps,
    GetOrderService,
    ListOrdersDeps,
    ListOrdersService,
)
from petshop_checkout.core.domain.service.manual_settlement import (
    ManualConfirmationSettlement,
    ManualSettlementDeps,
)
from petshop_checkout.core.domain.service.order_ledger import (
    OrderLedger,
    OrderLedgerDeps,
)
from petshop_checkout.core.domain.service.payment_dispatcher import (
    PaymentDispatcher,
    PaymentDispatcherDeps,
)
from petshop_checkout.core.domain.service.payment_service import (
    PaymentService,
    PaymentServiceDeps,
)
from petshop_checkout.core.domain.service.place_order_service import (
    PlaceOrderDeps,
    PlaceOrderService,
)
from petshop_checkout.core.domain.service.pricing_engine import PricingEngine
from petshop_checkout.core.domain.service.reconciliation_service import (
    ReconciliationDeps,
    ReconciliationService,
)
from petshop_checkout.core.domain.service.shipping_rules import ShippingRuleEvaluator
from petshop_checkout.core.domain.service.wallet_settlement import (
    WalletSettlement,
    WalletSettlementDeps,
)
from petshop_checkout.core.ports.outbound.payment_gateway import PaymentGateway


@dataclass(frozen=True)
class Adapters:
    catalog: InMemoryPriceCatalog
    coupons: InMemoryCouponLookup
    membership: InMemoryMembershipDirectory
    wallet: InMemoryWalletService
    gateway: PaymentGateway
    sessions: InMemoryPaymentSessionRepository
    orders: InMemoryOrderRepository
    invoices: InMemoryInvoiceRepository
    idempotency: InMemoryIdempotencyRepository
    events: LoggingEventPublisher


@dataclass(frozen=True)
class UseCases:
    place_order: PlaceOrderService
    get_order: GetOrderService
    list_orders: ListOrdersService
    validate_coupon: DiscountValidator
    payments: PaymentService
    reconcile: ReconciliationService
    watcher: GatewayStatusWatcher


def build_adapters(settings: Settings, seed: bool = True) -> Adapters:
    gateway: PaymentGateway
    if settings.gateway_base_url:
        gateway = HttpPaymentGateway.from_settings(settings)
    else:
        gateway = DummyPaymentGateway()

    adapters = Adapters(
        catalog=InMemoryPriceCatalog(currency=settings.currency),
        coupons=InMemoryCouponLookup(),
        membership=InMemoryMembershipDirectory(),
        wallet=InMemoryWalletService(currency=settings.currency),
        gateway=gateway,
        sessions=InMemoryPaymentSessionRepository(),
        orders=InMemoryOrderRepository(),
        invoices=InMemoryInvoiceRepository(),
        idempotency=InMemoryIdempotencyRepository(),
        events=LoggingEventPublisher(),
    )
    if seed:
        _seed_demo_data(adapters)
    return adapters


def build_pricing_engine(settings: Settings) -> PricingEngine:
    return PricingEngine(
        shipping=ShippingRuleEvaluator(
            voucher_prefixes=settings.free_delivery_prefixes,
            membership_waives_shipping=settings.membership_waives_shipping,
        ),
        base_fee=Money.of(settings.base_shipping_fee, settings.currency),
        threshold=Money.of(settings.free_shipping_threshold, settings.currency),
    )


def build_usecases(
    settings: Settings | None = None, adapters: Adapters | None = None
) -> UseCases:
    settings = settings or Settings.from_env()
    adapters = adapters or build_adapters(settings)

    pricing = build_pricing_engine(settings)
    ledger = OrderLedger(
        OrderLedgerDeps(
            orders=adapters.orders, invoices=adapters.invoices, events=adapters.events
        )
    )
    discounts = DiscountValidator(
        DiscountValidatorDeps(coupons=adapters.coupons, pricing=pricing)
    )
    wallet = WalletSettlement(WalletSettlementDeps(ledger=ledger, wallet=adapters.wallet))
    gateway = GatewaySettlement(
        GatewaySettlementDeps(
            ledger=ledger, gateway=adapters.gateway, sessions=adapters.sessions
        )
    )
    manual = ManualConfirmationSettlement(ManualSettlementDeps(ledger=ledger))
    dispatcher = PaymentDispatcher(
        PaymentDispatcherDeps(wallet=wallet, gateway=gateway, manual=manual)
    )

    place_order = PlaceOrderService(
        PlaceOrderDeps(
            catalog=adapters.catalog,
            membership=adapters.membership,
            discounts=discounts,
            coupons=adapters.coupons,
            pricing=pricing,
            ledger=ledger,
            dispatcher=dispatcher,
            sessions=adapters.sessions,
            idempotency=adapters.idempotency,
            idempotency_ttl_seconds=settings.idempotency_ttl_seconds,
        )
    )
    payments = PaymentService(
        PaymentServiceDeps(
            ledger=ledger,
            gateway=gateway,
            wallet=wallet,
            manual=manual,
            sessions=adapters.sessions,
            currency=settings.currency,
        )
    )
    reconcile = ReconciliationService(
        ReconciliationDeps(
            orders=adapters.orders,
            invoices=adapters.invoices,
            ledger=ledger,
            gateway=gateway,
            stale_after_seconds=settings.poll_timeout_seconds,
        )
    )
    watcher = GatewayStatusWatcher(
        settlement=gateway,
        interval=settings.poll_interval_seconds,
        timeout=settings.poll_timeout_seconds,
    )

    return UseCases(
        place_order=place_order,
        get_order=GetOrderService(GetOrderDeps(ledger=ledger)),
        list_orders=ListOrdersService(ListOrdersDeps(orders=adapters.orders)),
        validate_coupon=discounts,
        payments=payments,
        reconcile=reconcile,
        watcher=watcher,
    )


def _seed_demo_data(adapters: Adapters) -> None:
    now = now_utc()
    adapters.catalog.prices.update(
        {
            "dog-food-2kg": Decimal("45.00"),
            "cat-litter-10l": Decimal("25.00"),
            "chew-toy": Decimal("12.50"),
            "fish-flakes": Decimal("8.90"),
            "bird-cage": Decimal("150.00"),
        }
    )
    for coupon in (
        CouponRecord(
            code="WELCOME10",
            kind=CouponKind.PERCENTAGE,
            value=Decimal("10"),
            valid_from=now - timedelta(days=30),
            valid_until=now + timedelta(days=365),
            max_discount_amount=Decimal("50"),
        ),
        CouponRecord(
            code="SAVE20",
            kind=CouponKind.FIXED,
            value=Decimal("20"),
            valid_from=now - timedelta(days=30),
            valid_until=now + timedelta(days=365),
            min_order_amount=Decimal("100"),
            usage_limit=500,
        ),
        CouponRecord(
            code="SHIPFREE",
            kind=CouponKind.FREE_DELIVERY,
            value=Decimal("0"),
            valid_from=now - timedelta(days=30),
            valid_until=now + timedelta(days=365),
        ),
    ):
        adapters.coupons.add(coupon)

    adapters.wallet.balances.update({"c-1": Decimal("200.00"), "c-2": Decimal("20.00")})
    adapters.membership.tiers_by_customer["c-2"] = MembershipTier(
        tier_name=TierName.GOLDEN,
        percentage=DEFAULT_TIER_PERCENTAGES[TierName.GOLDEN],
        expiry_date=now + timedelta(days=365),
    )
