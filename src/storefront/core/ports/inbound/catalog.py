from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Sequence

from returns.result import Result

from storefront.core.domain.model.catalog import Product, ProductListing
from storefront.core.domain.model.errors import PlaceOrderError
from storefront.core.domain.model.order import DEFAULT_CURRENCY


@dataclass(frozen=True)
class AddProductCommand:
    name: str
    price: Decimal
    stock_quantity: int
    description: str | None = None
    currency: str = DEFAULT_CURRENCY


class CatalogUseCase(Protocol):
    def list_products(self) -> Result[Sequence[ProductListing], PlaceOrderError]: ...

    def add_product(
        self, command: AddProductCommand
    ) -> Result[Product, PlaceOrderError]: ...
