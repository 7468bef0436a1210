from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from storefront.core.domain.model.errors import PlaceOrderError
from storefront.core.domain.model.order import Order, OrderId, UserId


class OrderRepository(Protocol):
    def add(self, order: Order) -> Result[OrderId, PlaceOrderError]: ...

    def get(self, order_id: OrderId) -> Result[Order, PlaceOrderError]: ...

    def list_for_user(
        self, user_id: UserId
    ) -> Result[Sequence[Order], PlaceOrderError]: ...
