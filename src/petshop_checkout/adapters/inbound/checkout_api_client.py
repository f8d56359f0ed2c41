from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from returns.result import Failure, Result, Success

from petshop_checkout.config import Settings
from petshop_checkout.core.domain.model.errors import ApiError, CheckoutError, NetworkError

logger = logging.getLogger(__name__)


@dataclass
class CheckoutApiClient:
    """
    Talks to a running checkout server. Orders live in that process, so every
    command-line operation that reads or changes them goes through its API.
    """

    client: httpx.Client
    admin_token: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "CheckoutApiClient":
        client = httpx.Client(
            base_url=settings.api_base_url, timeout=settings.gateway_timeout_seconds
        )
        return cls(client=client, admin_token=settings.admin_token)

    def place_order(
        self, payload: dict[str, Any], idempotency_key: str | None = None
    ) -> Result[dict[str, Any], CheckoutError]:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        return self._request_json("POST", "/orders", payload, headers)

    def decide_manual_payment(
        self, order_id: str, decision: str
    ) -> Result[dict[str, Any], CheckoutError]:
        return self._request_json(
            "POST", f"/admin/orders/{order_id}/{decision}", None, self._admin_headers()
        )

    def reconcile(self) -> Result[dict[str, Any], CheckoutError]:
        return self._request_json("POST", "/admin/reconcile", None, self._admin_headers())

    def close(self) -> None:
        self.client.close()

    def _admin_headers(self) -> dict[str, str]:
        return {"X-Admin-Token": self.admin_token}

    def _request_json(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> Result[dict[str, Any], CheckoutError]:
        try:
            resp = self.client.request(method, path, json=body, headers=headers)
        except httpx.RequestError as e:
            logger.warning("Checkout API unreachable", extra={"path": path, "error": str(e)})
            return Failure(NetworkError(message=f"checkout API unreachable: {e}"))

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.is_error:
            detail = data if isinstance(data, dict) else {}
            return Failure(
                ApiError(
                    message=str(detail.get("message") or resp.reason_phrase),
                    error_type=str(detail.get("type") or "HTTPError"),
                    status_code=resp.status_code,
                )
            )
        if not isinstance(data, dict):
            return Failure(
                ApiError(
                    message="invalid response from checkout API",
                    error_type="InvalidResponse",
                    status_code=resp.status_code,
                )
            )
        return Success(data)
