from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Sequence

from returns.result import Failure, Result, Success

from storefront.core.domain.model.catalog import Product, ProductListing
from storefront.core.domain.model.errors import PlaceOrderError, ValidationError
from storefront.core.domain.model.order import MAX_INTEGER, Money
from storefront.core.ports.inbound.catalog import AddProductCommand, CatalogUseCase
from storefront.core.ports.outbound.unit_of_work import UnitOfWorkFactory
from storefront.logging_config import get_logger

logger = get_logger("services.catalog")


@dataclass(frozen=True)
class CatalogDeps:
    unit_of_work: UnitOfWorkFactory


@dataclass(frozen=True)
class CatalogService(CatalogUseCase):
    deps: CatalogDeps

    def list_products(self) -> Result[Sequence[ProductListing], PlaceOrderError]:
        # stock shown here is for display; placement re-reads it under lock
        with self.deps.unit_of_work() as uow:
            return uow.catalog.list_products()

    def add_product(
        self, command: AddProductCommand
    ) -> Result[Product, PlaceOrderError]:
        v = _normalize(command).bind(_validate)
        if isinstance(v, Failure):
            return v
        cmd, price = v.unwrap()

        with self.deps.unit_of_work() as uow:
            result = (
                uow.catalog.add_product(
                    name=cmd.name,
                    price=price.amount,
                    currency=price.currency,
                    description=cmd.description,
                )
                .bind(
                    lambda product: uow.inventory.restock(
                        product.product_id, cmd.stock_quantity
                    ).map(lambda _: product)
                )
                .bind(lambda product: uow.commit().map(lambda _: product))
            )

        if isinstance(result, Success):
            logger.info(
                "product_added",
                extra={
                    "product_id": result.unwrap().product_id.value,
                    "stock_quantity": cmd.stock_quantity,
                },
            )
        return result


def _normalize(cmd: AddProductCommand) -> Result[AddProductCommand, PlaceOrderError]:
    return Success(
        replace(
            cmd,
            name=(cmd.name or "").strip(),
            currency=(cmd.currency or "").strip().upper(),
        )
    )


def _validate(
    cmd: AddProductCommand,
) -> Result[tuple[AddProductCommand, Money], PlaceOrderError]:
    if not cmd.name:
        return Failure(ValidationError("name is required"))
    if len(cmd.currency) != 3 or not cmd.currency.isalpha():
        return Failure(ValidationError("currency must be a 3-letter code"))
    try:
        raw = Decimal(str(cmd.price))
    except InvalidOperation:
        return Failure(ValidationError("price must be a decimal number"))
    if not raw.is_finite():
        return Failure(ValidationError("price must be a decimal number"))
    # the stored price is in cents, so the check applies after rounding
    price = Money.of(raw, cmd.currency)
    if price.amount <= 0:
        return Failure(ValidationError("price must be at least 0.01"))
    if price.amount >= Decimal("100000000"):
        return Failure(ValidationError("price is out of range"))
    if not 0 <= cmd.stock_quantity <= MAX_INTEGER:
        return Failure(ValidationError("stock_quantity must be between 0 and 2147483647"))
    return Success((cmd, price))
