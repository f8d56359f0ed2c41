from __future__ import annotations

import logging
from dataclasses import dataclass

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.errors import (
    CheckoutError,
    InvalidStateTransition,
    ValidationError,
)
from petshop_checkout.core.domain.model.order import Order, OrderStatus, PendingReason
from petshop_checkout.core.domain.model.payment import (
    AttestedTransferPayment,
    SelfAttestedQrPayment,
)
from petshop_checkout.core.domain.model.settlement import SettlementOutcome
from petshop_checkout.core.domain.service.order_ledger import (
    OrderLedger,
    parse_order_id,
)

logger = logging.getLogger(__name__)

MIN_REFERENCE_LENGTH = 10


@dataclass(frozen=True)
class ManualSettlementDeps:
    ledger: OrderLedger


@dataclass(frozen=True)
class ManualConfirmationSettlement:
    """
    Payments the customer attests to (bank or exchange transfers, QR wallet
    scans). Nothing is verified here; the order waits in PENDING_PAYMENT until
    staff record the outcome with ``confirm`` or ``reject``.
    """

    deps: ManualSettlementDeps

    def settle_transfer(
        self, order: Order, method: AttestedTransferPayment
    ) -> Result[SettlementOutcome, CheckoutError]:
        return validate_transfer_claim(method).bind(
            lambda _: self._park(order, PendingReason.AWAITING_VERIFICATION)
        )

    def settle_qr(
        self, order: Order, method: SelfAttestedQrPayment
    ) -> Result[SettlementOutcome, CheckoutError]:
        return self._park(order, PendingReason.AWAITING_CONFIRMATION)

    def confirm(self, order_id: str) -> Result[SettlementOutcome, CheckoutError]:
        return self._pending(order_id).bind(
            lambda order: self.deps.ledger.transition(order, OrderStatus.PAID)
        ).bind(
            lambda paid: self.deps.ledger.finalize(paid).map(
                lambda invoice: SettlementOutcome(order=paid, invoice=invoice)
            )
        )

    def reject(self, order_id: str) -> Result[SettlementOutcome, CheckoutError]:
        return (
            self._pending(order_id)
            .bind(lambda order: self.deps.ledger.transition(order, OrderStatus.FAILED))
            .bind(
                lambda failed: self.deps.ledger.invoice_for(failed.order_id)
                .map(lambda invoice: SettlementOutcome(order=failed, invoice=invoice))
                .lash(lambda _: Success(SettlementOutcome(order=failed)))
            )
        )

    def _park(
        self, order: Order, reason: PendingReason
    ) -> Result[SettlementOutcome, CheckoutError]:
        logger.info(
            "Awaiting manual payment confirmation",
            extra={"order_id": str(order.order_id), "reason": reason.value},
        )
        return self.deps.ledger.transition(
            order, OrderStatus.PENDING_PAYMENT, reason
        ).bind(
            lambda pending: self.deps.ledger.finalize(pending).map(
                lambda invoice: SettlementOutcome(order=pending, invoice=invoice)
            )
        )

    def _pending(self, order_id: str) -> Result[Order, CheckoutError]:
        return parse_order_id(order_id).bind(self.deps.ledger.get).bind(_awaiting_staff)


def validate_transfer_claim(
    method: AttestedTransferPayment,
) -> Result[AttestedTransferPayment, CheckoutError]:
    if len(method.reference.strip()) < MIN_REFERENCE_LENGTH:
        return Failure(
            ValidationError(
                message=f"transaction reference must be at least {MIN_REFERENCE_LENGTH} characters"
            )
        )
    if not method.account_id.strip():
        return Failure(ValidationError(message="account_id is required"))
    return Success(method)


def _awaiting_staff(order: Order) -> Result[Order, CheckoutError]:
    if order.pending_reason not in (
        PendingReason.AWAITING_VERIFICATION,
        PendingReason.AWAITING_CONFIRMATION,
    ):
        return Failure(
            InvalidStateTransition(
                message="order is not awaiting manual confirmation",
                order_id=str(order.order_id),
                current=order.status.value,
                target="confirmed",
            )
        )
    return Success(order)
