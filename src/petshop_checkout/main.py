from __future__ import annotations

import argparse
import sys

import uvicorn

from petshop_checkout.adapters.inbound.checkout_api_client import CheckoutApiClient
from petshop_checkout.adapters.inbound.cli import run_manual, run_place, run_reconcile
from petshop_checkout.config import Settings, configure_logging


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="petshop-checkout")
    sub = parser.add_subparsers(dest="command", required=True)

    place = sub.add_parser("place", help="place an order on the running server")
    place.add_argument("payload")

    sub.add_parser("reconcile", help="sweep stale payments and audit totals")

    for action in ("confirm", "reject"):
        manual = sub.add_parser(action, help=f"{action} a manually attested payment")
        manual.add_argument("order_id")

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv if argv is not None else sys.argv[1:])
    settings = Settings.from_env()
    configure_logging(settings)

    if args.command == "serve":
        uvicorn.run("petshop_checkout.asgi:app", host=args.host, port=args.port)
        return 0

    api = CheckoutApiClient.from_settings(settings)
    try:
        if args.command == "place":
            return run_place(api, args.payload)
        if args.command == "reconcile":
            return run_reconcile(api)
        return run_manual(api, args.command, args.order_id)
    finally:
        api.close()


if __name__ == "__main__":
    raise SystemExit(main())
