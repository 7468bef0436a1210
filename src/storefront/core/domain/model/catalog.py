from __future__ import annotations

from dataclasses import dataclass

from storefront.core.domain.model.order import Money, ProductId


@dataclass(frozen=True)
class Product:
    product_id: ProductId
    name: str
    price: Money
    description: str | None = None


@dataclass(frozen=True)
class ProductListing:
    """Product joined with its stock level, for display only."""

    product: Product
    stock_quantity: int | None
