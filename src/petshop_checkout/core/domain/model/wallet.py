from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from petshop_checkout.core.domain.model.money import Money


class WalletTransactionKind(str, Enum):
    SPEND = "SPEND"
    REFUND = "REFUND"


@dataclass(frozen=True)
class WalletTransaction:
    transaction_id: str
    user_id: str
    kind: WalletTransactionKind
    amount: Money
    balance_before: Money
    balance_after: Money
    reference: str
    created_at: datetime


def refund_reference(reference: str) -> str:
    """Reference of the REFUND that voids the SPEND recorded under ``reference``."""
    return f"refund:{reference}"
