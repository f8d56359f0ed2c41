from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from returns.result import Result, Success

from petshop_checkout.core.domain.model.errors import CheckoutError
from petshop_checkout.core.domain.model.membership import MembershipTier
from petshop_checkout.core.domain.model.order import CustomerId
from petshop_checkout.core.ports.outbound.membership import MembershipDirectory


@dataclass
class InMemoryMembershipDirectory(MembershipDirectory):
    tiers_by_customer: Dict[str, MembershipTier] = field(default_factory=dict)

    def tier_for(
        self, customer_id: CustomerId
    ) -> Result[MembershipTier | None, CheckoutError]:
        return Success(self.tiers_by_customer.get(customer_id.value))
