from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Union, assert_never

from petshop_checkout.core.domain.model.money import Money


# ---- payment methods (closed union) ----------------------------------------


@dataclass(frozen=True)
class WalletPayment:
    user_id: str


@dataclass(frozen=True)
class CardGatewayPayment:
    pass


@dataclass(frozen=True)
class AttestedTransferPayment:
    """Cross-border / crypto transfer claimed by the customer."""

    reference: str
    account_id: str
    provider: str = ""


@dataclass(frozen=True)
class SelfAttestedQrPayment:
    provider: str = ""


PaymentMethod = Union[
    WalletPayment, CardGatewayPayment, AttestedTransferPayment, SelfAttestedQrPayment
]


class PaymentMethodKind(str, Enum):
    WALLET = "wallet"
    CARD_GATEWAY = "card_gateway"
    ATTESTED_TRANSFER = "attested_transfer"
    SELF_ATTESTED_QR = "self_attested_qr"


def method_kind(method: PaymentMethod) -> PaymentMethodKind:
    match method:
        case WalletPayment():
            return PaymentMethodKind.WALLET
        case CardGatewayPayment():
            return PaymentMethodKind.CARD_GATEWAY
        case AttestedTransferPayment():
            return PaymentMethodKind.ATTESTED_TRANSFER
        case SelfAttestedQrPayment():
            return PaymentMethodKind.SELF_ATTESTED_QR
    assert_never(method)


# ---- gateway session -------------------------------------------------------


class PaymentSessionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentSessionStatus.PENDING


@dataclass(frozen=True)
class PaymentSession:
    gateway_ref: str
    order_id: str
    payment_url: str
    amount: Money
    status: PaymentSessionStatus
    created_at: datetime


_GATEWAY_STATUS_ALIASES = {
    "pending": PaymentSessionStatus.PENDING,
    "processing": PaymentSessionStatus.PENDING,
    "completed": PaymentSessionStatus.COMPLETED,
    "failed": PaymentSessionStatus.FAILED,
    "cancelled": PaymentSessionStatus.CANCELLED,
    "canceled": PaymentSessionStatus.CANCELLED,
}


def parse_gateway_status(raw: str) -> PaymentSessionStatus | None:
    return _GATEWAY_STATUS_ALIASES.get(raw.strip().lower())
