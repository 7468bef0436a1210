from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from returns.result import Failure, Result

from storefront.core.domain.model.errors import PlaceOrderError, ValidationError
from storefront.core.domain.model.order import Order, OrderId
from storefront.core.ports.inbound.get_order import (
    GetOrderQuery,
    GetOrderUseCase,
    OrderLineView,
    OrderView,
)
from storefront.core.ports.outbound.unit_of_work import UnitOfWorkFactory


@dataclass(frozen=True)
class GetOrderDeps:
    unit_of_work: UnitOfWorkFactory


@dataclass(frozen=True)
class GetOrderService(GetOrderUseCase):
    deps: GetOrderDeps

    def get_order(self, query: GetOrderQuery) -> Result[OrderView, PlaceOrderError]:
        try:
            oid = OrderId(UUID(query.order_id))
        except ValueError:
            return Failure(ValidationError(message="order_id must be a valid UUID"))

        with self.deps.unit_of_work() as uow:
            return uow.orders.get(oid).map(_to_view)


def _to_view(order: Order) -> OrderView:
    lines = tuple(
        OrderLineView(
            product_id=li.product_id.value,
            price_at_time=li.price_at_time,
            quantity=li.quantity,
            subtotal=li.subtotal(),
        )
        for li in order.items
    )
    return OrderView(
        order_id=order.order_id,
        user_id=order.user_id,
        total=order.total(),
        status=order.status,
        created_at=order.created_at,
        lines=lines,
    )
