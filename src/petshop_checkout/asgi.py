from __future__ import annotations

from petshop_checkout.adapters.inbound.web.fastapi_app import create_app
from petshop_checkout.bootstrap import build_usecases
from petshop_checkout.config import Settings, configure_logging

settings = Settings.from_env()
configure_logging(settings)

usecases = build_usecases(settings)
app = create_app(
    usecases.place_order,
    usecases.get_order,
    usecases.list_orders,
    usecases.validate_coupon,
    usecases.payments,
    watcher=usecases.watcher,
    reconcile_uc=usecases.reconcile,
    admin_token=settings.admin_token,
)
