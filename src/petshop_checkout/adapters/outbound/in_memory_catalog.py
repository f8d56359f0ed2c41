from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict

from returns.result import Failure, Result, Success

from petshop_checkout.core.domain.model.cart import ProductId
from petshop_checkout.core.domain.model.errors import CheckoutError, ValidationError
from petshop_checkout.core.domain.model.money import DEFAULT_CURRENCY, Money
from petshop_checkout.core.ports.outbound.catalog import PriceCatalog


@dataclass
class InMemoryPriceCatalog(PriceCatalog):
    prices: Dict[str, Decimal] = field(default_factory=dict)
    currency: str = DEFAULT_CURRENCY

    def unit_price(self, product_id: ProductId) -> Result[Money, CheckoutError]:
        price = self.prices.get(product_id.value)
        if price is None:
            return Failure(ValidationError(message=f"unknown product: {product_id.value}"))
        return Success(Money.of(price, self.currency))
