from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

DEFAULT_CURRENCY = "HKD"
MINOR_UNIT = Decimal("0.01")


def quantize(value: Decimal) -> Decimal:
    return value.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    @staticmethod
    def of(amount: Decimal | int | str, currency: str = DEFAULT_CURRENCY) -> "Money":
        return Money(quantize(Decimal(str(amount))), currency)

    @staticmethod
    def zero(currency: str = DEFAULT_CURRENCY) -> "Money":
        return Money.of(0, currency)

    def __add__(self, other: "Money") -> "Money":
        self._assert_same_currency(other)
        return Money(quantize(self.amount + other.amount), self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._assert_same_currency(other)
        return Money(quantize(self.amount - other.amount), self.currency)

    def __mul__(self, n: int) -> "Money":
        return Money(quantize(self.amount * Decimal(n)), self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._assert_same_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._assert_same_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._assert_same_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._assert_same_currency(other)
        return self.amount >= other.amount

    def percent(self, percentage: Decimal) -> "Money":
        """``percentage`` is in points: ``Decimal("10")`` is ten percent."""
        return Money(quantize(self.amount * percentage / Decimal(100)), self.currency)

    def is_zero(self) -> bool:
        return self.amount == 0

    def _assert_same_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValueError(f"currency_mismatch: {self.currency} vs {other.currency}")


def fold_money(values: Iterable[Money], currency: str = DEFAULT_CURRENCY) -> Money:
    total = Money.zero(currency)
    for v in values:
        total = total + v
    return total


def min_money(a: Money, b: Money) -> Money:
    return a if a <= b else b


def max_money(a: Money, b: Money) -> Money:
    return a if a >= b else b


def now_utc() -> datetime:
    return datetime.now(timezone.utc)
