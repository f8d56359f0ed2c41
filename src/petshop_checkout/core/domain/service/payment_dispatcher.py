from __future__ import annotations

from dataclasses import dataclass
from typing import assert_never

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.order import Order
from petshop_checkout.core.domain.model.payment import (
    AttestedTransferPayment,
    CardGatewayPayment,
    SelfAttestedQrPayment,
    WalletPayment,
)
from petshop_checkout.core.domain.model.settlement import SettlementOutcome
from petshop_checkout.core.domain.service.gateway_settlement import GatewaySettlement
from petshop_checkout.core.domain.service.manual_settlement import (
    ManualConfirmationSettlement,
)
from petshop_checkout.core.domain.service.wallet_settlement import WalletSettlement


@dataclass(frozen=True)
class PaymentDispatcherDeps:
    wallet: WalletSettlement
    gateway: GatewaySettlement
    manual: ManualConfirmationSettlement


@dataclass(frozen=True)
class PaymentDispatcher:
    deps: PaymentDispatcherDeps

    def dispatch(self, order: Order) -> Result[SettlementOutcome, CheckoutError]:
        method = order.payment_method
        match method:
            case WalletPayment():
                return self.deps.wallet.settle(order, method)
            case CardGatewayPayment():
                return self.deps.gateway.settle(order, method)
            case AttestedTransferPayment():
                return self.deps.manual.settle_transfer(order, method)
            case SelfAttestedQrPayment():
                return self.deps.manual.settle_qr(order, method)
        assert_never(method)
