from __future__ import annotations

from typing import Protocol

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.money import Money
from petshop_checkout.core.domain.model.wallet import WalletTransaction


class WalletService(Protocol):
    """
    The wallet service owns the balance. ``debit`` must never take the balance
    below zero: it fails with InsufficientFunds instead of debiting partially.
    A debit repeated under the same reference returns the original SPEND,
    unless a REFUND under ``refund_reference(reference)`` has voided it.
    """

    def get_balance(self, user_id: str) -> Result[Money, CheckoutError]: ...

    def debit(
        self, user_id: str, amount: Money, reference: str
    ) -> Result[WalletTransaction, CheckoutError]: ...

    def refund(
        self, user_id: str, amount: Money, reference: str
    ) -> Result[WalletTransaction, CheckoutError]: ...
