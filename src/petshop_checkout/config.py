from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    currency: str = "HKD"
    base_shipping_fee: Decimal = Decimal("5.99")
    free_shipping_threshold: Decimal = Decimal("100")
    free_delivery_prefixes: tuple[str, ...] = ("FREEDEL", "FREESHIP")
    membership_waives_shipping: bool = True
    poll_interval_seconds: float = 3.0
    poll_timeout_seconds: float = 600.0
    idempotency_ttl_seconds: int = 120
    gateway_base_url: str = ""
    gateway_api_key: str = ""
    gateway_timeout_seconds: float = 25.0
    api_base_url: str = "http://127.0.0.1:8000"
    admin_token: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        default = cls()

        def get(name: str) -> str | None:
            raw = (env.get(f"PETSHOP_{name}") or "").strip()
            return raw or None

        prefixes = get("FREE_DELIVERY_PREFIXES")
        return cls(
            currency=(get("CURRENCY") or default.currency).upper(),
            base_shipping_fee=Decimal(get("BASE_SHIPPING_FEE") or default.base_shipping_fee),
            free_shipping_threshold=Decimal(
                get("FREE_SHIPPING_THRESHOLD") or default.free_shipping_threshold
            ),
            free_delivery_prefixes=(
                tuple(p.strip().upper() for p in prefixes.split(",") if p.strip())
                if prefixes
                else default.free_delivery_prefixes
            ),
            membership_waives_shipping=(
                get("MEMBERSHIP_WAIVES_SHIPPING") or str(default.membership_waives_shipping)
            ).lower()
            in {"1", "true", "yes", "on"},
            poll_interval_seconds=float(
                get("POLL_INTERVAL_SECONDS") or default.poll_interval_seconds
            ),
            poll_timeout_seconds=float(
                get("POLL_TIMEOUT_SECONDS") or default.poll_timeout_seconds
            ),
            idempotency_ttl_seconds=int(
                get("IDEMPOTENCY_TTL_SECONDS") or default.idempotency_ttl_seconds
            ),
            gateway_base_url=get("GATEWAY_BASE_URL") or default.gateway_base_url,
            gateway_api_key=get("GATEWAY_API_KEY") or default.gateway_api_key,
            gateway_timeout_seconds=float(
                get("GATEWAY_TIMEOUT_SECONDS") or default.gateway_timeout_seconds
            ),
            api_base_url=get("API_URL") or default.api_base_url,
            admin_token=get("ADMIN_TOKEN") or default.admin_token,
            log_level=(get("LOG_LEVEL") or default.log_level).upper(),
        )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
