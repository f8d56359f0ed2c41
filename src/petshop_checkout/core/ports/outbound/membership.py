from __future__ import annotations

from typing import Protocol

from returns.result import Result

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.membership import MembershipTier
from petshop_checkout.core.domain.model.order import CustomerId


class MembershipDirectory(Protocol):
    def tier_for(
        self, customer_id: CustomerId
    ) -> Result[MembershipTier | None, CheckoutError]: ...
