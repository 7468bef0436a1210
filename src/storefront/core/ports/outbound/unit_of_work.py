from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol

from returns.result import Result

from storefront.core.domain.model.errors import PlaceOrderError
from storefront.core.ports.outbound.catalog import CatalogStore
from storefront.core.ports.outbound.inventory import InventoryLedger
from storefront.core.ports.outbound.orders import OrderRepository
from storefront.core.ports.outbound.users import UserRepository


class UnitOfWork(Protocol):
    """
    One atomic unit: everything staged through the repositories becomes
    visible on commit() or not at all. Leaving the context without a
    successful commit rolls back and releases every reservation.
    """

    catalog: CatalogStore
    inventory: InventoryLedger
    orders: OrderRepository
    users: UserRepository

    def commit(self) -> Result[None, PlaceOrderError]: ...

    def rollback(self) -> None: ...


class UnitOfWorkFactory(Protocol):
    def __call__(self) -> AbstractContextManager[UnitOfWork]: ...
