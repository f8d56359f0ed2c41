from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncIterator, Literal

from fastapi import FastAPI, Header, Query, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from returns.result import Success

from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    GatewayError,
    IdempotencyFailed,
    IdempotencyInProgress,
    IdempotencyKeyConflict,
    InconsistentStateError,
    InsufficientFunds,
    InvalidCoupon,
    InvalidStateTransition,
    InvoiceNotFound,
    NetworkError,
    OrderNotFound,
    PaymentSessionNotFound,
    PersistenceError,
    PublishError,
    Unauthorized,
    ValidationError,
)
from petshop_checkout.core.domain.model.invoice import Invoice
from petshop_checkout.core.domain.model.order import Order, OrderStatus, PendingReason
from petshop_checkout.core.domain.model.payment import method_kind
from petshop_checkout.core.domain.service.gateway_watcher import GatewayStatusWatcher
from petshop_checkout.core.ports.inbound.get_order import (
    GetOrderQuery,
    GetOrderUseCase,
    ListOrdersQuery,
    ListOrdersUseCase,
)
from petshop_checkout.core.ports.inbound.payments import (
    CreatePaymentSessionCommand,
    GatewayNotification,
    PaymentUseCase,
    WalletPaymentCommand,
)
from petshop_checkout.core.ports.inbound.place_order import (
    PaymentChoice,
    PlaceOrderCommand,
    PlaceOrderLine,
    PlaceOrderUseCase,
)
from petshop_checkout.core.ports.inbound.reconcile import (
    ReconcileUseCase,
    ReconciliationReport,
)
from petshop_checkout.core.ports.inbound.validate_coupon import (
    ValidateCouponQuery,
    ValidateCouponUseCase,
)

logger = logging.getLogger(__name__)

# ---- HTTP DTOs (adapter layer) ---------------------------------------------


class OrderLineIn(BaseModel):
    product_id: str = Field(min_length=1, examples=["dog-food-2kg"])
    quantity: int = Field(gt=0, examples=[2])


class CustomerInfoIn(BaseModel):
    name: str = Field(min_length=1, examples=["Mei Chan"])
    phone: str = Field("", examples=["+852 5555 0101"])
    email: str = Field(min_length=3, examples=["mei@example.com"])


class PaymentIn(BaseModel):
    method: Literal["wallet", "card_gateway", "attested_transfer", "self_attested_qr"]
    user_id: str | None = None
    reference: str | None = None
    account_id: str | None = None
    provider: str | None = Field(None, examples=["binance", "alipay"])


class PlaceOrderRequest(BaseModel):
    customer_id: str = Field(min_length=1, examples=["c-1"])
    customer: CustomerInfoIn
    lines: list[OrderLineIn] = Field(min_length=1)
    payment: PaymentIn
    coupon_code: str | None = Field(None, examples=["WELCOME10"])
    free_delivery_code: str | None = Field(None, examples=["FREEDEL-2024"])


class PricingOut(BaseModel):
    subtotal: str
    coupon_discount: str
    membership_discount: str
    shipping_fee: str
    shipping_waiver_reason: str | None
    total: str
    currency: str
    coupon_code: str | None
    membership_tier: str | None
    free_delivery_code: str | None


class OrderLineOut(BaseModel):
    product_id: str
    unit_price: str
    quantity: int
    subtotal: str


class OrderOut(BaseModel):
    order_id: str
    customer_id: str
    status: str
    pending_reason: str | None
    payment_method: str
    pricing: PricingOut
    lines: list[OrderLineOut]
    created_at: str
    updated_at: str


class InvoiceOut(BaseModel):
    invoice_number: str
    order_id: str
    customer_id: str
    payment_method: str
    payment_status: str
    subtotal: str
    discount: str
    membership_discount: str
    shipping_fee: str
    total: str
    currency: str
    discount_code: str | None
    membership_tier: str | None
    free_delivery_code: str | None
    issued_at: str
    paid_at: str | None


class CheckoutReceiptResponse(BaseModel):
    order: OrderOut
    invoice: InvoiceOut | None
    payment_url: str | None
    replayed: bool


class OrderListResponse(BaseModel):
    offset: int
    limit: int
    items: list[OrderOut]


class CouponValidateRequest(BaseModel):
    code: str = Field(min_length=1, examples=["WELCOME10"])
    order_amount: Decimal = Field(ge=0, examples=["80.00"])


class CouponOut(BaseModel):
    code: str
    kind: str
    amount: str
    max_discount_amount: str | None


class CouponValidateResponse(BaseModel):
    valid: bool
    coupon: CouponOut | None
    discount_amount: str | None


class WalletPaymentRequest(BaseModel):
    user_id: str = Field(min_length=1)


class SettlementResponse(BaseModel):
    order: OrderOut
    invoice: InvoiceOut | None
    payment_url: str | None


class PaymentSessionRequest(BaseModel):
    order_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, examples=["85.99"])
    currency: str | None = None
    # informational; the stored order's customer is what the gateway receives
    customer_info: CustomerInfoIn | None = None


class PaymentSessionResponse(BaseModel):
    order_id: str
    payment_url: str | None
    order_status: str


class PaymentStatusResponse(BaseModel):
    order_id: str
    status: str | None
    order_status: str


class WebhookRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    gateway_ref: str = Field(alias="transactionId", min_length=1)
    status: str = Field(min_length=1, examples=["COMPLETED"])


class WebhookAck(BaseModel):
    received: bool
    order_status: str


class WatchCancelResponse(BaseModel):
    order_id: str
    cancelled: bool


class ReconcileResponse(BaseModel):
    gateway_orders_checked: int
    gateway_orders_settled: int
    invoices_issued: int
    inconsistent_records: list[str]
    clean: bool


class ErrorResponse(BaseModel):
    type: str
    message: str
    details: list[dict[str, Any]] | None = None


# ---- mapping helpers -------------------------------------------------------


def _map_error_to_http(err: CheckoutError) -> tuple[int, ErrorResponse]:
    body = ErrorResponse(type=type(err).__name__, message=str(err))

    if isinstance(err, (ValidationError, InvalidCoupon)):
        return 400, body

    if isinstance(err, Unauthorized):
        return 401, body

    if isinstance(err, InsufficientFunds):
        if err.order_id is not None:
            body.details = [{"order_id": err.order_id}]
        return 402, body

    if isinstance(err, (OrderNotFound, InvoiceNotFound, PaymentSessionNotFound)):
        return 404, body

    if isinstance(
        err,
        (
            InvalidStateTransition,
            IdempotencyInProgress,
            IdempotencyFailed,
            IdempotencyKeyConflict,
        ),
    ):
        return 409, body

    if isinstance(err, GatewayError):
        return 502, body

    if isinstance(err, (NetworkError, PublishError)):
        return 503, body

    if isinstance(err, (InconsistentStateError, PersistenceError)):
        return 500, body

    return 500, body


def _money(m: Any) -> str:
    return str(m.amount)


def _order_out(order: Order) -> OrderOut:
    p = order.pricing
    return OrderOut(
        order_id=str(order.order_id),
        customer_id=order.customer_id.value,
        status=order.status.value,
        pending_reason=order.pending_reason.value if order.pending_reason else None,
        payment_method=method_kind(order.payment_method).value,
        pricing=PricingOut(
            subtotal=_money(p.subtotal),
            coupon_discount=_money(p.coupon_discount),
            membership_discount=_money(p.membership_discount),
            shipping_fee=_money(p.shipping_fee),
            shipping_waiver_reason=(
                p.shipping_waiver_reason.value if p.shipping_waiver_reason else None
            ),
            total=_money(p.total),
            currency=p.total.currency,
            coupon_code=p.coupon_code,
            membership_tier=p.membership_tier.value if p.membership_tier else None,
            free_delivery_code=p.free_delivery_code,
        ),
        lines=[
            OrderLineOut(
                product_id=ln.product_id.value,
                unit_price=_money(ln.unit_price),
                quantity=ln.quantity,
                subtotal=_money(ln.subtotal()),
            )
            for ln in order.items
        ],
        created_at=order.created_at.isoformat(),
        updated_at=order.updated_at.isoformat(),
    )


def _invoice_out(invoice: Invoice | None) -> InvoiceOut | None:
    if invoice is None:
        return None
    return InvoiceOut(
        invoice_number=invoice.invoice_number,
        order_id=str(invoice.order_id),
        customer_id=invoice.customer_id.value,
        payment_method=invoice.payment_method.value,
        payment_status=invoice.payment_status.value,
        subtotal=_money(invoice.subtotal),
        discount=_money(invoice.discount),
        membership_discount=_money(invoice.membership_discount),
        shipping_fee=_money(invoice.effective_shipping_fee()),
        total=_money(invoice.total),
        currency=invoice.total.currency,
        discount_code=invoice.discount_code,
        membership_tier=invoice.membership_tier.value if invoice.membership_tier else None,
        free_delivery_code=invoice.free_delivery_code,
        issued_at=invoice.issued_at.isoformat(),
        paid_at=invoice.paid_at.isoformat() if invoice.paid_at else None,
    )


def _report_out(report: ReconciliationReport) -> ReconcileResponse:
    return ReconcileResponse(
        gateway_orders_checked=report.gateway_orders_checked,
        gateway_orders_settled=report.gateway_orders_settled,
        invoices_issued=report.invoices_issued,
        inconsistent_records=list(report.inconsistent_records),
        clean=report.clean,
    )


def _to_command(req: PlaceOrderRequest, idempotency_key: str | None) -> PlaceOrderCommand:
    return PlaceOrderCommand(
        customer_id=req.customer_id,
        customer_name=req.customer.name,
        customer_phone=req.customer.phone,
        customer_email=req.customer.email,
        lines=tuple(
            PlaceOrderLine(product_id=ln.product_id, quantity=ln.quantity)
            for ln in req.lines
        ),
        payment=PaymentChoice(
            method=req.payment.method,
            user_id=req.payment.user_id,
            reference=req.payment.reference,
            account_id=req.payment.account_id,
            provider=req.payment.provider,
        ),
        coupon_code=req.coupon_code,
        free_delivery_code=req.free_delivery_code,
        idempotency_key=idempotency_key,
    )


def _awaits_gateway(order: Order) -> bool:
    return (
        order.status is OrderStatus.PENDING_PAYMENT
        and order.pending_reason is PendingReason.AWAITING_GATEWAY
    )


def create_app(
    place_order_uc: PlaceOrderUseCase,
    get_order_uc: GetOrderUseCase,
    list_orders_uc: ListOrdersUseCase,
    validate_coupon_uc: ValidateCouponUseCase,
    payments_uc: PaymentUseCase,
    watcher: GatewayStatusWatcher | None = None,
    reconcile_uc: ReconcileUseCase | None = None,
    admin_token: str = "",
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if watcher is not None:
            await watcher.shutdown()

    app = FastAPI(title="petshop_checkout", lifespan=lifespan)

    def watch(order: Order) -> None:
        if watcher is not None and _awaits_gateway(order):
            watcher.watch(str(order.order_id))

    def require_admin(token: str | None) -> None:
        if not admin_token:
            raise Unauthorized(message="admin API is disabled")
        if token is None or not secrets.compare_digest(token, admin_token):
            raise Unauthorized(message="invalid admin token")

    # --- exception handlers --------------------------------------------------

    @app.exception_handler(CheckoutError)
    async def handle_domain_error(_: Request, exc: CheckoutError) -> JSONResponse:
        status, body = _map_error_to_http(exc)
        if status >= 500:
            logger.error(
                "Request failed", extra={"error_type": body.type, "error": body.message}
            )
        return JSONResponse(status_code=status, content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        body = ErrorResponse(
            type="RequestValidationError",
            message="invalid request",
            details=[
                {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
                for e in exc.errors()
            ],
        )
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(Exception)
    async def handle_unexpected(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", exc_info=exc)
        body = ErrorResponse(type="InternalServerError", message="internal server error")
        return JSONResponse(status_code=500, content=body.model_dump())

    # --- routes --------------------------------------------------------------

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(
        "/orders",
        response_model=CheckoutReceiptResponse,
        status_code=201,
        responses={
            400: {"model": ErrorResponse},
            402: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
            502: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
    )
    async def place_order(
        req: PlaceOrderRequest,
        response: Response,
        idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    ) -> Any:
        cmd = _to_command(req, idempotency_key)
        result = await run_in_threadpool(place_order_uc.place_order, cmd)

        if isinstance(result, Success):
            receipt = result.unwrap()
            watch(receipt.order)
            response.headers["Location"] = f"/orders/{receipt.order.order_id}"
            return CheckoutReceiptResponse(
                order=_order_out(receipt.order),
                invoice=_invoice_out(receipt.invoice),
                payment_url=receipt.payment_url,
                replayed=receipt.replayed,
            )

        raise result.failure()

    @app.get(
        "/orders",
        response_model=OrderListResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    def list_orders(
        offset: int = Query(0, ge=0),
        limit: int = Query(50, ge=1, le=100),
        customer_id: str | None = Query(None, min_length=1),
    ) -> Any:
        result = list_orders_uc.list_orders(
            ListOrdersQuery(offset=offset, limit=limit, customer_id=customer_id)
        )

        if isinstance(result, Success):
            return OrderListResponse(
                offset=offset,
                limit=limit,
                items=[_order_out(o) for o in result.unwrap()],
            )

        raise result.failure()

    @app.get(
        "/orders/{order_id}",
        response_model=OrderOut,
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    def get_order(order_id: str) -> Any:
        result = get_order_uc.get_order(GetOrderQuery(order_id=order_id))

        if isinstance(result, Success):
            return _order_out(result.unwrap())

        raise result.failure()

    @app.get(
        "/orders/{order_id}/invoice",
        response_model=InvoiceOut,
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    def get_invoice(order_id: str) -> Any:
        result = get_order_uc.get_invoice(GetOrderQuery(order_id=order_id))

        if isinstance(result, Success):
            return _invoice_out(result.unwrap())

        raise result.failure()

    @app.post(
        "/coupons/validate",
        response_model=CouponValidateResponse,
        responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    )
    def validate_coupon(req: CouponValidateRequest) -> Any:
        result = validate_coupon_uc.validate_coupon(
            ValidateCouponQuery(code=req.code, order_amount=req.order_amount)
        )

        if isinstance(result, Success):
            quote = result.unwrap()
            c = quote.coupon
            return CouponValidateResponse(
                valid=True,
                coupon=CouponOut(
                    code=c.code,
                    kind=c.kind.value,
                    amount=str(c.amount),
                    max_discount_amount=(
                        str(c.max_discount_amount)
                        if c.max_discount_amount is not None
                        else None
                    ),
                ),
                discount_amount=_money(quote.discount_amount),
            )

        raise result.failure()

    @app.post(
        "/orders/{order_id}/wallet-payment",
        response_model=SettlementResponse,
        responses={
            400: {"model": ErrorResponse},
            402: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
        },
    )
    def pay_with_wallet(order_id: str, req: WalletPaymentRequest) -> Any:
        result = payments_uc.pay_with_wallet(
            WalletPaymentCommand(order_id=order_id, user_id=req.user_id)
        )

        if isinstance(result, Success):
            outcome = result.unwrap()
            return SettlementResponse(
                order=_order_out(outcome.order),
                invoice=_invoice_out(outcome.invoice),
                payment_url=None,
            )

        raise result.failure()

    @app.post(
        "/payments/sessions",
        response_model=PaymentSessionResponse,
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            502: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
    )
    async def create_payment_session(req: PaymentSessionRequest) -> Any:
        cmd = CreatePaymentSessionCommand(
            order_id=req.order_id, amount=req.amount, currency=req.currency
        )
        result = await run_in_threadpool(payments_uc.create_session, cmd)

        if isinstance(result, Success):
            outcome = result.unwrap()
            watch(outcome.order)
            return PaymentSessionResponse(
                order_id=str(outcome.order.order_id),
                payment_url=outcome.payment_url,
                order_status=outcome.order.status.value,
            )

        raise result.failure()

    @app.get(
        "/payments/status/{order_id}",
        response_model=PaymentStatusResponse,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    )
    def payment_status(order_id: str) -> Any:
        result = payments_uc.payment_status(order_id)

        if isinstance(result, Success):
            view = result.unwrap()
            return PaymentStatusResponse(
                order_id=view.order_id,
                status=view.session_status.value if view.session_status else None,
                order_status=view.order_status.value,
            )

        raise result.failure()

    @app.delete("/payments/watch/{order_id}", response_model=WatchCancelResponse)
    async def cancel_watch(order_id: str) -> Any:
        cancelled = watcher.cancel(order_id) if watcher is not None else False
        return WatchCancelResponse(order_id=order_id, cancelled=cancelled)

    @app.post(
        "/payments/webhook",
        response_model=WebhookAck,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    )
    async def payment_webhook(req: WebhookRequest) -> Any:
        result = await run_in_threadpool(
            payments_uc.handle_notification,
            GatewayNotification(gateway_ref=req.gateway_ref, status=req.status),
        )

        if isinstance(result, Success):
            order = result.unwrap()
            if watcher is not None and order.status.is_terminal:
                watcher.cancel(str(order.order_id))
            return WebhookAck(received=True, order_status=order.status.value)

        raise result.failure()

    # --- back office ---------------------------------------------------------

    @app.post(
        "/admin/orders/{order_id}/{decision}",
        response_model=SettlementResponse,
        responses={
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
        },
    )
    def decide_manual_payment(
        order_id: str,
        decision: Literal["confirm", "reject"],
        x_admin_token: str | None = Header(None, alias="X-Admin-Token"),
    ) -> Any:
        require_admin(x_admin_token)
        if decision == "confirm":
            result = payments_uc.confirm_manual(order_id)
        else:
            result = payments_uc.reject_manual(order_id)

        if isinstance(result, Success):
            outcome = result.unwrap()
            return SettlementResponse(
                order=_order_out(outcome.order),
                invoice=_invoice_out(outcome.invoice),
                payment_url=None,
            )

        raise result.failure()

    if reconcile_uc is not None:
        sweep = reconcile_uc

        @app.post(
            "/admin/reconcile",
            response_model=ReconcileResponse,
            responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        )
        async def reconcile(
            x_admin_token: str | None = Header(None, alias="X-Admin-Token"),
        ) -> Any:
            require_admin(x_admin_token)
            result = await run_in_threadpool(sweep.reconcile)

            if isinstance(result, Success):
                return _report_out(result.unwrap())

            raise result.failure()

    return app
