from __future__ import annotations

import logging
from dataclasses import dataclass

from returns.pipeline import flow
from returns.pointfree import bind
from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    InsufficientFunds,
    InvalidStateTransition,
    ValidationError,
)
from petshop_checkout.core.domain.model.money import Money
from petshop_checkout.core.domain.model.order import Order, OrderStatus
from petshop_checkout.core.domain.model.payment import WalletPayment
from petshop_checkout.core.domain.model.settlement import SettlementOutcome
from petshop_checkout.core.domain.model.wallet import WalletTransaction, refund_reference
from petshop_checkout.core.domain.service.order_ledger import (
    OrderLedger,
    parse_order_id,
)
from petshop_checkout.core.ports.outbound.wallet import WalletService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletSettlementDeps:
    ledger: OrderLedger
    wallet: WalletService


@dataclass(frozen=True)
class WalletSettlement:
    """
    Pays an order from the customer's store wallet.

    The balance is read from the wallet service on every attempt; a figure
    shown earlier on a checkout page is never trusted. Either the debit, the
    PAID transition and the PAID invoice all happen, or the order stays
    CREATED with the wallet untouched.
    """

    deps: WalletSettlementDeps

    def settle(
        self, order: Order, method: WalletPayment
    ) -> Result[SettlementOutcome, CheckoutError]:
        total = order.total()
        return flow(
            self.deps.wallet.get_balance(method.user_id),
            bind(lambda balance: _ensure_covers(order, balance, total)),
            bind(
                lambda _: self.deps.wallet.debit(
                    method.user_id, total, _reference(order)
                )
            ),
            bind(lambda tx: self._complete(order, method, tx)),
        )

    def pay_with_wallet(
        self, order_id: str, user_id: str
    ) -> Result[SettlementOutcome, CheckoutError]:
        """Retry entry point for a CREATED wallet order, e.g. after a top-up."""
        return (
            parse_order_id(order_id)
            .bind(self.deps.ledger.get)
            .bind(lambda order: _payable_by(order, user_id))
            .bind(lambda order: self.settle(order, WalletPayment(user_id=user_id)))
        )

    def _complete(
        self, order: Order, method: WalletPayment, tx: WalletTransaction
    ) -> Result[SettlementOutcome, CheckoutError]:
        paid = self.deps.ledger.transition(order, OrderStatus.PAID)
        if isinstance(paid, Failure):
            self._compensate(order, method, tx, paid.failure())
            return paid

        logger.info(
            "Wallet payment settled",
            extra={
                "order_id": str(order.order_id),
                "transaction_id": tx.transaction_id,
                "balance_after": str(tx.balance_after.amount),
            },
        )
        invoice = self.deps.ledger.finalize(paid.unwrap())
        if isinstance(invoice, Failure):
            # money and order agree; the reconciliation sweep issues the invoice
            logger.error(
                "Invoice not issued for paid wallet order",
                extra={"order_id": str(order.order_id), "error": str(invoice.failure())},
            )
            return Success(SettlementOutcome(order=paid.unwrap()))

        return Success(SettlementOutcome(order=paid.unwrap(), invoice=invoice.unwrap()))

    def _compensate(
        self,
        order: Order,
        method: WalletPayment,
        tx: WalletTransaction,
        cause: CheckoutError,
    ) -> None:
        refunded = self.deps.wallet.refund(
            method.user_id, tx.amount, refund_reference(_reference(order))
        )
        if isinstance(refunded, Failure):
            logger.error(
                "Wallet debit could not be refunded",
                extra={
                    "order_id": str(order.order_id),
                    "transaction_id": tx.transaction_id,
                    "cause": str(cause),
                    "error": str(refunded.failure()),
                },
            )
            return
        logger.warning(
            "Wallet debit refunded",
            extra={"order_id": str(order.order_id), "cause": str(cause)},
        )


def _ensure_covers(
    order: Order, balance: Money, total: Money
) -> Result[Money, CheckoutError]:
    if balance < total:
        logger.info(
            "Wallet balance too low",
            extra={
                "order_id": str(order.order_id),
                "balance": str(balance.amount),
                "required": str(total.amount),
            },
        )
        return Failure(
            InsufficientFunds(
                message="wallet balance does not cover the order total",
                balance=str(balance.amount),
                required=str(total.amount),
                order_id=str(order.order_id),
            )
        )
    return Success(balance)


def _payable_by(order: Order, user_id: str) -> Result[Order, CheckoutError]:
    if order.status is not OrderStatus.CREATED:
        return Failure(
            InvalidStateTransition(
                message="only CREATED orders can be paid from the wallet",
                order_id=str(order.order_id),
                current=order.status.value,
                target=OrderStatus.PAID.value,
            )
        )
    method = order.payment_method
    if not isinstance(method, WalletPayment):
        return Failure(ValidationError(message="order is not a wallet order"))
    if method.user_id != user_id:
        return Failure(ValidationError(message="user_id does not own this order"))
    return Success(order)


def _reference(order: Order) -> str:
    return f"order:{order.order_id}"
