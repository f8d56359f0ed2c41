from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    InsufficientFunds,
    ValidationError,
)
from petshop_checkout.core.domain.model.money import DEFAULT_CURRENCY, Money, now_utc
from petshop_checkout.core.domain.model.wallet import (
    WalletTransaction,
    WalletTransactionKind,
    refund_reference,
)
from petshop_checkout.core.ports.outbound.wallet import WalletService


@dataclass
class InMemoryWalletService(WalletService):
    """
    Store wallet with a transaction log. Read-check-debit runs under one lock,
    and a SPEND is recorded once per reference so a retried debit is not
    charged twice. A SPEND voided by its REFUND no longer counts, so the next
    debit under that reference takes the money again.
    """

    balances: Dict[str, Decimal] = field(default_factory=dict)
    currency: str = DEFAULT_CURRENCY
    clock: Callable[[], datetime] = now_utc
    transactions: List[WalletTransaction] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get_balance(self, user_id: str) -> Result[Money, CheckoutError]:
        with self._lock:
            return Success(self._balance(user_id))

    def debit(
        self, user_id: str, amount: Money, reference: str
    ) -> Result[WalletTransaction, CheckoutError]:
        if amount.amount <= 0:
            return Failure(ValidationError(message="debit amount must be > 0"))

        with self._lock:
            live = self._unrefunded_spend(reference)
            if live is not None:
                return Success(live)

            before = self._balance(user_id)
            if before < amount:
                return Failure(
                    InsufficientFunds(
                        message="wallet balance does not cover the order total",
                        balance=str(before.amount),
                        required=str(amount.amount),
                    )
                )
            return Success(
                self._record(user_id, WalletTransactionKind.SPEND, amount, before, reference)
            )

    def refund(
        self, user_id: str, amount: Money, reference: str
    ) -> Result[WalletTransaction, CheckoutError]:
        with self._lock:
            before = self._balance(user_id)
            return Success(
                self._record(user_id, WalletTransactionKind.REFUND, amount, before, reference)
            )

    def _unrefunded_spend(self, reference: str) -> WalletTransaction | None:
        spends = [
            tx
            for tx in self.transactions
            if tx.kind is WalletTransactionKind.SPEND and tx.reference == reference
        ]
        refunds = sum(
            1
            for tx in self.transactions
            if tx.kind is WalletTransactionKind.REFUND
            and tx.reference == refund_reference(reference)
        )
        return spends[-1] if len(spends) > refunds else None

    def _balance(self, user_id: str) -> Money:
        return Money.of(self.balances.get(user_id, Decimal("0")), self.currency)

    def _record(
        self,
        user_id: str,
        kind: WalletTransactionKind,
        amount: Money,
        before: Money,
        reference: str,
    ) -> WalletTransaction:
        after = before - amount if kind is WalletTransactionKind.SPEND else before + amount
        self.balances[user_id] = after.amount
        tx = WalletTransaction(
            transaction_id=str(uuid.uuid4()),
            user_id=user_id,
            kind=kind,
            amount=amount,
            balance_before=before,
            balance_after=after,
            reference=reference,
            created_at=self.clock(),
        )
        self.transactions.append(tx)
        return tx
