from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from petshop_checkout.core.domain.model.money import Money


@dataclass(frozen=True)
class ProductId:
    value: str


@dataclass(frozen=True)
class CartLine:
    product_id: ProductId
    unit_price: Money
    quantity: int

    def subtotal(self) -> Money:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CartSnapshot:
    lines: Tuple[CartLine, ...]
    coupon_code: str | None = None
