from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable

from returns.pipeline import flow
from returns.pointfree import bind
from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.cart import CartLine, CartSnapshot, ProductId
from petshop_checkout.core.domain.model.coupon import CouponSpec
from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    IdempotencyFailed,
    IdempotencyInProgress,
    IdempotencyKeyConflict,
    InconsistentStateError,
    InvoiceNotFound,
    OrderNotFound,
    ValidationError,
)
from petshop_checkout.core.domain.model.idempotency import IdempotencyRecord
from petshop_checkout.core.domain.model.membership import MembershipTier
from petshop_checkout.core.domain.model.money import now_utc
from petshop_checkout.core.domain.model.order import (
    CustomerId,
    CustomerInfo,
    Order,
    OrderId,
    OrderStatus,
)
from petshop_checkout.core.domain.model.payment import (
    AttestedTransferPayment,
    CardGatewayPayment,
    PaymentMethod,
    PaymentMethodKind,
    PaymentSessionStatus,
    SelfAttestedQrPayment,
    WalletPayment,
)
from petshop_checkout.core.domain.model.pricing import PricingResult
from petshop_checkout.core.domain.model.settlement import SettlementOutcome
from petshop_checkout.core.domain.service.discount_validator import DiscountValidator
from petshop_checkout.core.domain.service.manual_settlement import (
    validate_transfer_claim,
)
from petshop_checkout.core.domain.service.order_ledger import OrderLedger
from petshop_checkout.core.domain.service.payment_dispatcher import PaymentDispatcher
from petshop_checkout.core.domain.service.pricing_engine import PricingEngine
from petshop_checkout.core.ports.inbound.place_order import (
    CheckoutReceipt,
    PaymentChoice,
    PlaceOrderCommand,
    PlaceOrderUseCase,
)
from petshop_checkout.core.ports.outbound.catalog import PriceCatalog
from petshop_checkout.core.ports.outbound.coupons import CouponLookup
from petshop_checkout.core.ports.outbound.idempotency import IdempotencyRepository
from petshop_checkout.core.ports.outbound.membership import MembershipDirectory
from petshop_checkout.core.ports.outbound.payment_gateway import (
    PaymentSessionRepository,
)

logger = logging.getLogger(__name__)

Finalize = tuple[Callable[[CheckoutReceipt], None], Callable[[CheckoutError], None]]


@dataclass(frozen=True)
class PlaceOrderDeps:
    catalog: PriceCatalog
    membership: MembershipDirectory
    discounts: DiscountValidator
    coupons: CouponLookup
    pricing: PricingEngine
    ledger: OrderLedger
    dispatcher: PaymentDispatcher
    sessions: PaymentSessionRepository
    idempotency: IdempotencyRepository
    idempotency_ttl_seconds: int = 120
    clock: Callable[[], datetime] = now_utc


@dataclass(frozen=True)
class PlaceOrderContext:
    command: PlaceOrderCommand
    order_id: OrderId
    payment_method: PaymentMethod
    now: datetime
    cart: CartSnapshot | None = None
    coupon: CouponSpec | None = None
    tier: MembershipTier | None = None
    pricing: PricingResult | None = None
    order: Order | None = None
    outcome: SettlementOutcome | None = None


@dataclass(frozen=True)
class PlaceOrderService(PlaceOrderUseCase):
    """
    Checkout: re-price the cart on the server, persist the order, then settle
    it with the chosen payment method.

    With an idempotency key, one key maps to one order id for the lifetime of
    the key; a replay never prices or charges a second time.
    """

    deps: PlaceOrderDeps

    def place_order(
        self, command: PlaceOrderCommand
    ) -> Result[CheckoutReceipt, CheckoutError]:
        v = _validate_command(command)
        if isinstance(v, Failure):
            return v
        cmd = v.unwrap()

        if cmd.idempotency_key is None:
            return self._run_once(cmd, order_id=OrderId.new(), finalize=None)

        customer = CustomerId(cmd.customer_id.strip())
        key = cmd.idempotency_key
        req_hash = _request_hash(cmd)

        existing = self.deps.idempotency.get(customer, key)
        if isinstance(existing, Failure):
            return existing

        rec = existing.unwrap()
        if rec is not None:
            if rec.request_hash != req_hash:
                return Failure(_conflict(key))
            return self._resume(customer, cmd, rec)

        order_id = OrderId.new()
        started = self.deps.idempotency.start(
            customer, key, order_id=order_id, request_hash=req_hash
        )
        if isinstance(started, Failure):
            # another request registered the key first
            existing2 = self.deps.idempotency.get(customer, key)
            if isinstance(existing2, Failure):
                return existing2
            rec2 = existing2.unwrap()
            if rec2 is None:
                return started
            if rec2.request_hash != req_hash:
                return Failure(_conflict(key))
            return self._resume(customer, cmd, rec2)

        return self._run_once(
            cmd, order_id=order_id, finalize=self._finalizers(customer, key)
        )

    def _resume(
        self, customer: CustomerId, cmd: PlaceOrderCommand, rec: IdempotencyRecord
    ) -> Result[CheckoutReceipt, CheckoutError]:
        key = cmd.idempotency_key or "<missing>"

        if rec.status == "COMPLETED":
            return self.deps.ledger.get(rec.order_id).map(self._stored_receipt)

        if rec.status == "FAILED":
            return Failure(
                IdempotencyFailed(
                    message=(
                        "previous request with same key failed; "
                        "use a new idempotency key to retry"
                    ),
                    key=key,
                    previous_error=rec.previous_error or "unknown",
                )
            )

        if not self._is_expired(rec):
            return Failure(
                IdempotencyInProgress(
                    message="request with same key is in progress", key=key
                )
            )

        # stale IN_PROGRESS: continue with the SAME order id
        logger.warning(
            "Resuming stale checkout",
            extra={"idempotency_key": key, "order_id": str(rec.order_id)},
        )
        got = self.deps.ledger.get(rec.order_id)
        if isinstance(got, Failure):
            if isinstance(got.failure(), OrderNotFound):
                return self._run_once(
                    cmd, order_id=rec.order_id, finalize=self._finalizers(customer, key)
                )
            return got

        order = got.unwrap()
        if order.status is not OrderStatus.CREATED:
            receipt = self._stored_receipt(order)
            _ = self.deps.idempotency.complete(customer, key)
            return Success(receipt)

        # persisted but never settled; the stored pricing is reused as is
        result = self.deps.dispatcher.dispatch(order).map(_outcome_to_receipt)
        ok, ng = self._finalizers(customer, key)
        if isinstance(result, Success):
            ok(result.unwrap())
        else:
            ng(result.failure())
        return result

    def _run_once(
        self, cmd: PlaceOrderCommand, order_id: OrderId, finalize: Finalize | None
    ) -> Result[CheckoutReceipt, CheckoutError]:
        result = flow(
            cmd,
            lambda c: _build_context(c, order_id, self.deps.clock()),
            bind(self._build_cart),
            bind(self._validate_coupon),
            bind(self._lookup_membership),
            bind(self._price),
            bind(self._persist),
            bind(self._record_redemption),
            bind(self._settle),
            bind(_to_receipt),
        )

        if finalize is not None:
            ok, ng = finalize
            if isinstance(result, Success):
                ok(result.unwrap())
            else:
                ng(result.failure())

        return result

    # ---- steps -------------------------------------------------------------

    def _build_cart(
        self, ctx: PlaceOrderContext
    ) -> Result[PlaceOrderContext, CheckoutError]:
        lines: list[CartLine] = []
        for ln in ctx.command.lines:
            product = ProductId(ln.product_id.strip())
            price = self.deps.catalog.unit_price(product)
            if isinstance(price, Failure):
                return price
            lines.append(
                CartLine(product_id=product, unit_price=price.unwrap(), quantity=ln.quantity)
            )
        cart = CartSnapshot(lines=tuple(lines), coupon_code=ctx.command.coupon_code)
        return Success(replace(ctx, cart=cart))

    def _validate_coupon(
        self, ctx: PlaceOrderContext
    ) -> Result[PlaceOrderContext, CheckoutError]:
        code = ctx.command.coupon_code
        if code is None or not code.strip():
            return Success(ctx)
        if ctx.cart is None:
            return _incomplete(ctx, "cart")
        subtotal = self.deps.pricing.compute_subtotal(ctx.cart.lines)
        return self.deps.discounts.validate(code, subtotal).map(
            lambda spec: replace(ctx, coupon=spec)
        )

    def _lookup_membership(
        self, ctx: PlaceOrderContext
    ) -> Result[PlaceOrderContext, CheckoutError]:
        return self.deps.membership.tier_for(CustomerId(ctx.command.customer_id.strip())).map(
            lambda tier: replace(ctx, tier=tier)
        )

    def _price(self, ctx: PlaceOrderContext) -> Result[PlaceOrderContext, CheckoutError]:
        if ctx.cart is None:
            return _incomplete(ctx, "cart")
        pricing = self.deps.pricing.price(
            ctx.cart, ctx.coupon, ctx.tier, ctx.command.free_delivery_code, ctx.now
        )
        return Success(replace(ctx, pricing=pricing))

    def _persist(self, ctx: PlaceOrderContext) -> Result[PlaceOrderContext, CheckoutError]:
        if ctx.cart is None or ctx.pricing is None:
            return _incomplete(ctx, "pricing")
        cmd = ctx.command
        return self.deps.ledger.create_order(
            ctx.order_id,
            ctx.pricing,
            CustomerId(cmd.customer_id.strip()),
            CustomerInfo(
                name=cmd.customer_name.strip(),
                phone=cmd.customer_phone.strip(),
                email=cmd.customer_email.strip(),
            ),
            ctx.cart.lines,
            ctx.payment_method,
            idempotency_key=cmd.idempotency_key,
        ).map(lambda order: replace(ctx, order=order))

    def _record_redemption(
        self, ctx: PlaceOrderContext
    ) -> Result[PlaceOrderContext, CheckoutError]:
        if ctx.coupon is None:
            return Success(ctx)
        recorded = self.deps.coupons.record_redemption(ctx.coupon.code)
        if isinstance(recorded, Failure):
            logger.warning(
                "Coupon redemption not recorded",
                extra={
                    "order_id": str(ctx.order_id),
                    "coupon_code": ctx.coupon.code,
                    "error": str(recorded.failure()),
                },
            )
        return Success(ctx)

    def _settle(self, ctx: PlaceOrderContext) -> Result[PlaceOrderContext, CheckoutError]:
        if ctx.order is None:
            return _incomplete(ctx, "order")
        return self.deps.dispatcher.dispatch(ctx.order).map(
            lambda outcome: replace(ctx, outcome=outcome)
        )

    # ---- idempotency helpers -----------------------------------------------

    def _finalizers(self, customer: CustomerId, key: str) -> Finalize:
        def on_ok(_: CheckoutReceipt) -> None:
            _ = self.deps.idempotency.complete(customer, key)

        def on_ng(err: CheckoutError) -> None:
            _ = self.deps.idempotency.fail(customer, key, previous_error=type(err).__name__)

        return on_ok, on_ng

    def _is_expired(self, rec: IdempotencyRecord) -> bool:
        ttl = timedelta(seconds=self.deps.idempotency_ttl_seconds)
        return (self.deps.clock() - rec.started_at) > ttl

    def _stored_receipt(self, order: Order) -> CheckoutReceipt:
        invoice = self.deps.ledger.invoice_for(order.order_id)
        if isinstance(invoice, Failure) and not isinstance(
            invoice.failure(), InvoiceNotFound
        ):
            logger.warning(
                "Stored invoice unavailable on replay",
                extra={"order_id": str(order.order_id), "error": str(invoice.failure())},
            )
        return CheckoutReceipt(
            order=order,
            invoice=invoice.value_or(None),
            payment_url=self._pending_payment_url(order),
            replayed=True,
        )

    def _pending_payment_url(self, order: Order) -> str | None:
        if order.status is not OrderStatus.PENDING_PAYMENT:
            return None
        session = self.deps.sessions.find_by_order(str(order.order_id)).value_or(None)
        if session is None or session.status is not PaymentSessionStatus.PENDING:
            return None
        return session.payment_url


# ---- pure helpers ----------------------------------------------------------


def _validate_command(
    cmd: PlaceOrderCommand,
) -> Result[PlaceOrderCommand, CheckoutError]:
    if not cmd.customer_id.strip():
        return Failure(ValidationError("customer_id is required"))
    if not cmd.customer_name.strip():
        return Failure(ValidationError("customer name is required"))
    if "@" not in cmd.customer_email:
        return Failure(ValidationError("customer email is invalid"))
    if not cmd.lines:
        return Failure(ValidationError("at least one line item is required"))
    if cmd.idempotency_key is not None and not cmd.idempotency_key.strip():
        return Failure(
            ValidationError("idempotency_key must be non-empty when provided")
        )

    for i, ln in enumerate(cmd.lines):
        if not ln.product_id.strip():
            return Failure(ValidationError(f"lines[{i}].product_id is required"))
        if ln.quantity <= 0:
            return Failure(ValidationError(f"lines[{i}].quantity must be > 0"))

    return _payment_method(cmd.payment, cmd.customer_id.strip()).map(lambda _: cmd)


def _payment_method(
    choice: PaymentChoice, customer_id: str
) -> Result[PaymentMethod, CheckoutError]:
    try:
        kind = PaymentMethodKind(choice.method)
    except ValueError:
        return Failure(ValidationError(f"unknown payment method: {choice.method}"))

    if kind is PaymentMethodKind.WALLET:
        return Success(WalletPayment(user_id=(choice.user_id or customer_id).strip()))
    if kind is PaymentMethodKind.CARD_GATEWAY:
        return Success(CardGatewayPayment())
    if kind is PaymentMethodKind.ATTESTED_TRANSFER:
        return validate_transfer_claim(
            AttestedTransferPayment(
                reference=(choice.reference or "").strip(),
                account_id=(choice.account_id or "").strip(),
                provider=(choice.provider or "").strip(),
            )
        )
    return Success(SelfAttestedQrPayment(provider=(choice.provider or "").strip()))


def _build_context(
    cmd: PlaceOrderCommand, order_id: OrderId, now: datetime
) -> Result[PlaceOrderContext, CheckoutError]:
    return _payment_method(cmd.payment, cmd.customer_id.strip()).map(
        lambda method: PlaceOrderContext(
            command=cmd, order_id=order_id, payment_method=method, now=now
        )
    )


def _to_receipt(ctx: PlaceOrderContext) -> Result[CheckoutReceipt, CheckoutError]:
    if ctx.outcome is None:
        return _incomplete(ctx, "settlement outcome")
    return Success(_outcome_to_receipt(ctx.outcome))


def _incomplete(ctx: PlaceOrderContext, step: str) -> Failure[CheckoutError]:
    return Failure(
        InconsistentStateError(
            message=f"checkout reached a later step without its {step}",
            record_id=str(ctx.order_id),
        )
    )


def _outcome_to_receipt(outcome: SettlementOutcome) -> CheckoutReceipt:
    return CheckoutReceipt(
        order=outcome.order, invoice=outcome.invoice, payment_url=outcome.payment_url
    )


def _conflict(key: str) -> IdempotencyKeyConflict:
    return IdempotencyKeyConflict(
        message="same idempotency key used with different request", key=key
    )


def _request_hash(cmd: PlaceOrderCommand) -> str:
    payload = {
        "customer_id": cmd.customer_id.strip(),
        "customer": [cmd.customer_name, cmd.customer_phone, cmd.customer_email],
        "lines": [
            {"product_id": ln.product_id, "quantity": ln.quantity} for ln in cmd.lines
        ],
        "payment": {
            "method": cmd.payment.method,
            "user_id": cmd.payment.user_id,
            "reference": cmd.payment.reference,
            "account_id": cmd.payment.account_id,
            "provider": cmd.payment.provider,
        },
        "coupon_code": cmd.coupon_code,
        "free_delivery_code": cmd.free_delivery_code,
    }
    blob = json.dumps(
        payload, ensure_ascii=False, sort_keys=True, separators=(",", ":")
    ).encode("utf-8")
    return hashlib.sha256(blob).hexdigest()
