from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Sequence

from returns.result import Result

from storefront.core.domain.model.errors import PlaceOrderError
from storefront.core.domain.model.order import Money, OrderId


@dataclass(frozen=True)
class ListOrdersQuery:
    user_id: int


@dataclass(frozen=True)
class OrderSummaryView:
    order_id: OrderId
    total: Money
    status: str
    created_at: datetime


class ListOrdersUseCase(Protocol):
    def list_orders(
        self, query: ListOrdersQuery
    ) -> Result[Sequence[OrderSummaryView], PlaceOrderError]: ...
