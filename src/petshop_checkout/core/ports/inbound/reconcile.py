from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError


@dataclass(frozen=True)
class ReconciliationReport:
    gateway_orders_checked: int = 0
    gateway_orders_settled: int = 0
    invoices_issued: int = 0
    inconsistent_records: tuple[str, ...] = field(default_factory=tuple)

    @property
    def clean(self) -> bool:
        return not self.inconsistent_records


class ReconcileUseCase(Protocol):
    def reconcile(self) -> Result[ReconciliationReport, CheckoutError]: ...
