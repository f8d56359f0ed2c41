from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class TierName(str, Enum):
    SILVER = "Silver Paw"
    GOLDEN = "Golden Paw"
    DIAMOND = "Diamond Paw"


DEFAULT_TIER_PERCENTAGES: dict[TierName, Decimal] = {
    TierName.SILVER: Decimal("5"),
    TierName.GOLDEN: Decimal("10"),
    TierName.DIAMOND: Decimal("15"),
}


@dataclass(frozen=True)
class MembershipTier:
    tier_name: TierName
    percentage: Decimal
    expiry_date: datetime

    def is_active(self, now: datetime) -> bool:
        return self.expiry_date > now


def active_tier(tier: MembershipTier | None, now: datetime) -> MembershipTier | None:
    if tier is None or not tier.is_active(now):
        return None
    return tier
