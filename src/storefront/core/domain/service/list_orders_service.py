from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from returns.result import Failure, Result

from storefront.core.domain.model.errors import PlaceOrderError
from storefront.core.domain.model.order import Order, UserId
from storefront.core.domain.service.validation import check_user_id
from storefront.core.ports.inbound.list_orders import (
    ListOrdersQuery,
    ListOrdersUseCase,
    OrderSummaryView,
)
from storefront.core.ports.outbound.unit_of_work import UnitOfWorkFactory


@dataclass(frozen=True)
class ListOrdersDeps:
    unit_of_work: UnitOfWorkFactory


@dataclass(frozen=True)
class ListOrdersService(ListOrdersUseCase):
    deps: ListOrdersDeps

    def list_orders(
        self, query: ListOrdersQuery
    ) -> Result[Sequence[OrderSummaryView], PlaceOrderError]:
        checked = check_user_id(query.user_id)
        if isinstance(checked, Failure):
            return checked

        with self.deps.unit_of_work() as uow:
            return uow.orders.list_for_user(UserId(query.user_id)).map(_to_summaries)


def _to_summaries(orders: Sequence[Order]) -> Sequence[OrderSummaryView]:
    return tuple(
        OrderSummaryView(
            order_id=o.order_id,
            total=o.total(),
            status=o.status,
            created_at=o.created_at,
        )
        for o in orders
    )
