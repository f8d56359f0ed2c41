from __future__ import annotations

from typing import Protocol

from returns.result import Result

from petshop_checkout.core.domain.model.cart import ProductId
from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.money import Money


class PriceCatalog(Protocol):
    def unit_price(self, product_id: ProductId) -> Result[Money, CheckoutError]: ...
