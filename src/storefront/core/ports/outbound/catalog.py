from __future__ import annotations

from decimal import Decimal
from typing import Mapping, Protocol, Sequence

from returns.result import Result

from storefront.core.domain.model.catalog import Product, ProductListing
from storefront.core.domain.model.errors import PlaceOrderError
from storefront.core.domain.model.order import ProductId


class CatalogStore(Protocol):
    def get_products(
        self, product_ids: Sequence[ProductId]
    ) -> Result[Mapping[ProductId, Product], PlaceOrderError]:
        """Products that exist among ``product_ids``; absent ids are left out."""
        ...

    def add_product(
        self,
        name: str,
        price: Decimal,
        currency: str,
        description: str | None = None,
    ) -> Result[Product, PlaceOrderError]: ...

    def list_products(self) -> Result[Sequence[ProductListing], PlaceOrderError]: ...
