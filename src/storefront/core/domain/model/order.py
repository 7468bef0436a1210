from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Tuple
from uuid import UUID, uuid4

DEFAULT_CURRENCY = "USD"

# the only status this service writes; later lifecycle states belong elsewhere
ORDER_STATUS_CREATED = "created"

_CENTS = Decimal("0.01")

# largest id or quantity the INTEGER storage columns hold
MAX_INTEGER = 2**31 - 1


@dataclass(frozen=True)
class OrderId:
    value: UUID

    @staticmethod
    def new() -> "OrderId":
        return OrderId(uuid4())


@dataclass(frozen=True)
class UserId:
    value: int


@dataclass(frozen=True, order=True)
class ProductId:
    value: int


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    @staticmethod
    def of(amount: Decimal | int | str, currency: str = DEFAULT_CURRENCY) -> "Money":
        dec = Decimal(str(amount)).quantize(_CENTS, rounding=ROUND_HALF_UP)
        return Money(dec, currency)

    def __add__(self, other: "Money") -> "Money":
        self._assert_same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, n: int) -> "Money":
        return Money(
            (self.amount * Decimal(n)).quantize(_CENTS, rounding=ROUND_HALF_UP),
            self.currency,
        )

    def _assert_same_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValueError(f"currency_mismatch: {self.currency} vs {other.currency}")


@dataclass(frozen=True)
class LineItem:
    product_id: ProductId
    price_at_time: Money
    quantity: int

    def subtotal(self) -> Money:
        return self.price_at_time * self.quantity


@dataclass(frozen=True)
class Order:
    order_id: OrderId
    user_id: UserId
    items: Tuple[LineItem, ...]
    created_at: datetime
    status: str = ORDER_STATUS_CREATED

    @property
    def currency(self) -> str:
        return self.items[0].price_at_time.currency if self.items else DEFAULT_CURRENCY

    def total(self) -> Money:
        return fold_money((it.subtotal() for it in self.items), currency=self.currency)


def fold_money(values: Iterable[Money], currency: str = DEFAULT_CURRENCY) -> Money:
    total = Money.of(0, currency=currency)
    for v in values:
        total = total + v
    return total


def now_utc() -> datetime:
    return datetime.now(timezone.utc)
