from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from returns.result import Result

from storefront.core.domain.model.errors import PlaceOrderError
from storefront.core.domain.model.order import Money, OrderId, ProductId, UserId


@dataclass(frozen=True)
class PlaceOrderLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class PlaceOrderCommand:
    user_id: int
    lines: Sequence[PlaceOrderLine]


@dataclass(frozen=True)
class ChargedLine:
    product_id: ProductId
    quantity: int
    price_at_time: Money


@dataclass(frozen=True)
class OrderReceipt:
    order_id: OrderId
    user_id: UserId
    total: Money
    lines: Sequence[ChargedLine]


class PlaceOrderUseCase(Protocol):
    def place_order(
        self, command: PlaceOrderCommand
    ) -> Result[OrderReceipt, PlaceOrderError]: ...
