from __future__ import annotations

import json
from typing import Any

from returns.result import Success

from petshop_checkout.adapters.inbound.checkout_api_client import CheckoutApiClient


def run_place(api: CheckoutApiClient, raw: str) -> int:
    """
    raw: JSON string, the body of ``POST /orders``.
    Example:
      {"customer_id":"c-1",
       "customer":{"name":"Mei","phone":"","email":"mei@example.com"},
       "payment":{"method":"wallet"},
       "lines":[{"product_id":"dog-food-2kg","quantity":2}],
       "coupon_code":"WELCOME10",
       "idempotency_key":"checkout-42"}
    """
    try:
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("payload must be a JSON object")
    except ValueError as e:
        print(f"invalid_input: {e}")
        return 2

    key = payload.pop("idempotency_key", None)
    result = api.place_order(payload, idempotency_key=key)

    if isinstance(result, Success):
        receipt = result.unwrap()
        order = receipt["order"]
        print(
            "[ok]",
            {
                "order_id": order["order_id"],
                "status": order["status"],
                "total": order["pricing"]["total"],
                "currency": order["pricing"]["currency"],
                "invoice": _invoice_number(receipt.get("invoice")),
                "payment_url": receipt.get("payment_url"),
            },
        )
        return 0

    print("[ng]", str(result.failure()))
    return 1


def run_reconcile(api: CheckoutApiClient) -> int:
    result = api.reconcile()

    if isinstance(result, Success):
        report = result.unwrap()
        print(
            "[ok]",
            {
                "gateway_orders_checked": report["gateway_orders_checked"],
                "gateway_orders_settled": report["gateway_orders_settled"],
                "invoices_issued": report["invoices_issued"],
                "inconsistent_records": report["inconsistent_records"],
            },
        )
        return 0 if report["clean"] else 1

    print("[ng]", str(result.failure()))
    return 1


def run_manual(api: CheckoutApiClient, action: str, order_id: str) -> int:
    if action not in ("confirm", "reject"):
        print(f"invalid_input: unknown action {action!r}")
        return 2

    result = api.decide_manual_payment(order_id, action)

    if isinstance(result, Success):
        print("[ok]", _outcome_summary(result.unwrap()))
        return 0

    print("[ng]", str(result.failure()))
    return 1


def _outcome_summary(outcome: dict[str, Any]) -> dict[str, Any]:
    invoice = outcome.get("invoice")
    return {
        "order_id": outcome["order"]["order_id"],
        "status": outcome["order"]["status"],
        "invoice": _invoice_number(invoice),
        "invoice_status": invoice["payment_status"] if invoice else None,
    }


def _invoice_number(invoice: dict[str, Any] | None) -> str | None:
    return invoice["invoice_number"] if invoice else None
