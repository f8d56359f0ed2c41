from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

import httpx
from returns.result import Failure, Result, Success

from petshop_checkout.config import Settings
from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    GatewayError,
    NetworkError,
)
from petshop_checkout.core.domain.model.money import now_utc
from petshop_checkout.core.domain.model.payment import (
    PaymentSession,
    PaymentSessionStatus,
    parse_gateway_status,
)
from petshop_checkout.core.ports.outbound.payment_gateway import (
    PaymentGateway,
    SessionRequest,
)

logger = logging.getLogger(__name__)

CHECKOUT_PATH = "/api/payment/checkout"
VERIFY_PATH = "/api/payment/verify-payment"


@dataclass
class HttpPaymentGateway(PaymentGateway):
    """
    Hosted-checkout gateway over JSON/HTTP.

    Transport failures (connect errors, timeouts) become NetworkError; any
    answer the gateway did give but that cannot be used (non-2xx, missing
    fields, business error flag) becomes GatewayError.
    """

    client: httpx.Client
    api_key: str
    return_base_url: str = ""
    clock: Callable[[], datetime] = field(default=now_utc)

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpPaymentGateway":
        client = httpx.Client(
            base_url=settings.gateway_base_url,
            timeout=settings.gateway_timeout_seconds,
            headers={"Accept": "application/json"},
        )
        return cls(client=client, api_key=settings.gateway_api_key)

    def create_session(
        self, request: SessionRequest
    ) -> Result[PaymentSession, CheckoutError]:
        body = {
            "fullname": request.customer.name,
            "email": request.customer.email,
            "amount": str(request.amount.amount),
            "currency": request.amount.currency,
            "metadata": {
                "orderId": request.order_id,
                "customerPhone": request.customer.phone,
            },
        }
        if self.return_base_url:
            body["success_url"] = f"{self.return_base_url}/payment/success"
            body["cancel_url"] = f"{self.return_base_url}/payment/cancel"
            body["webhook_url"] = f"{self.return_base_url}/payments/webhook"

        def to_session(data: dict[str, Any]) -> Result[PaymentSession, CheckoutError]:
            url = data.get("payment_url") or data.get("checkout_url")
            ref = data.get("transaction_id")
            if not url or not ref:
                return Failure(GatewayError(message="payment URL not provided by gateway"))
            return Success(
                PaymentSession(
                    gateway_ref=str(ref),
                    order_id=request.order_id,
                    payment_url=str(url),
                    amount=request.amount,
                    status=PaymentSessionStatus.PENDING,
                    created_at=self.clock(),
                )
            )

        return self._request_json("POST", CHECKOUT_PATH, body).bind(to_session)

    def get_session_status(
        self, gateway_ref: str
    ) -> Result[PaymentSessionStatus, CheckoutError]:
        def to_status(data: dict[str, Any]) -> Result[PaymentSessionStatus, CheckoutError]:
            status = parse_gateway_status(str(data.get("payment_status") or ""))
            if status is None:
                return Failure(
                    GatewayError(
                        message=f"unknown payment status: {data.get('payment_status')!r}"
                    )
                )
            return Success(status)

        return self._request_json(
            "POST", VERIFY_PATH, {"transaction_id": gateway_ref}
        ).bind(to_status)

    def close(self) -> None:
        self.client.close()

    def _request_json(
        self, method: str, path: str, body: dict[str, Any]
    ) -> Result[dict[str, Any], CheckoutError]:
        try:
            resp = self.client.request(
                method, path, json=body, headers={"X-API-KEY": self.api_key}
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Gateway rejected request",
                extra={"path": path, "status_code": e.response.status_code},
            )
            return Failure(
                GatewayError(message=f"gateway HTTP {e.response.status_code}")
            )
        except httpx.RequestError as e:
            logger.warning("Gateway unreachable", extra={"path": path, "error": str(e)})
            return Failure(NetworkError(message=f"gateway unreachable: {e}"))

        try:
            data = resp.json()
        except ValueError:
            return Failure(GatewayError(message="invalid response from gateway"))

        if not isinstance(data, dict):
            return Failure(GatewayError(message="invalid response from gateway"))
        if data.get("status") is False or data.get("error"):
            return Failure(
                GatewayError(
                    message=str(data.get("message") or data.get("error") or "gateway error")
                )
            )
        return Success(data)
