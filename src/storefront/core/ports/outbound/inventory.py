from __future__ import annotations

from typing import Mapping, Protocol, Sequence

from returns.result import Result

from storefront.core.domain.model.errors import PlaceOrderError
from storefront.core.domain.model.order import ProductId


class InventoryLedger(Protocol):
    def reserve(
        self, product_ids: Sequence[ProductId]
    ) -> Result[Mapping[ProductId, int], PlaceOrderError]:
        """
        Take an exclusive reservation on each inventory record, in the order
        given, and return the stock read under that reservation. Reservations
        last until the enclosing unit of work ends.
        """
        ...

    def decrement(
        self, demand: Mapping[ProductId, int]
    ) -> Result[None, PlaceOrderError]: ...

    def restock(
        self, product_id: ProductId, quantity: int
    ) -> Result[None, PlaceOrderError]: ...
