from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Mapping, Sequence

from returns.result import Failure, Result, Success
from sqlalchemy import Select, select, update
from sqlalchemy.orm import Session, selectinload

from storefront.adapters.outbound.sqlalchemy.errors import db_result
from storefront.adapters.outbound.sqlalchemy.tables import (
    InventoryRow,
    OrderItemRow,
    OrderRow,
    ProductRow,
    UserRow,
)
from storefront.core.domain.model.catalog import Product, ProductListing
from storefront.core.domain.model.errors import (
    ConflictError,
    NotFoundError,
    OrderNotFound,
    PlaceOrderError,
)
from storefront.core.domain.model.order import (
    LineItem,
    Money,
    Order,
    OrderId,
    ProductId,
    UserId,
    now_utc,
)
from storefront.core.domain.model.user import User


def lock_stock_row(product_id: int) -> Select:
    """
    Stock of one product, locking its inventory and product rows so neither
    the quantity nor the price can change before the transaction ends.
    """
    return (
        select(InventoryRow.stock_quantity)
        .join(ProductRow, ProductRow.product_id == InventoryRow.product_id)
        .where(InventoryRow.product_id == product_id)
        .with_for_update()
    )


class SqlInventoryLedger:
    def __init__(self, session: Session):
        self._session = session

    @db_result("reserve stock")
    def reserve(
        self, product_ids: Sequence[ProductId]
    ) -> Result[Mapping[ProductId, int], PlaceOrderError]:
        stock: Dict[ProductId, int] = {}
        # one lock statement per product so acquisition follows the caller's order
        for pid in product_ids:
            qty = self._session.execute(lock_stock_row(pid.value)).scalar_one_or_none()
            if qty is None:
                return Failure(NotFoundError("product not found", product_id=pid.value))
            stock[pid] = qty
        return Success(stock)

    @db_result("decrement stock")
    def decrement(self, demand: Mapping[ProductId, int]) -> Result[None, PlaceOrderError]:
        for pid in sorted(demand):
            qty = demand[pid]
            res = self._session.execute(
                update(InventoryRow)
                .where(
                    InventoryRow.product_id == pid.value,
                    InventoryRow.stock_quantity >= qty,
                )
                .values(stock_quantity=InventoryRow.stock_quantity - qty)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                return Failure(ConflictError(f"stock for product {pid.value} changed"))
        return Success(None)

    @db_result("restock")
    def restock(self, product_id: ProductId, quantity: int) -> Result[None, PlaceOrderError]:
        row = self._session.get(InventoryRow, product_id.value)
        if row is None:
            self._session.add(
                InventoryRow(product_id=product_id.value, stock_quantity=quantity)
            )
        else:
            self._session.execute(
                update(InventoryRow)
                .where(InventoryRow.product_id == product_id.value)
                .values(stock_quantity=InventoryRow.stock_quantity + quantity)
                .execution_options(synchronize_session=False)
            )
        self._session.flush()
        return Success(None)


class SqlCatalogStore:
    def __init__(self, session: Session):
        self._session = session

    @db_result("load products")
    def get_products(
        self, product_ids: Sequence[ProductId]
    ) -> Result[Mapping[ProductId, Product], PlaceOrderError]:
        rows = self._session.scalars(
            select(ProductRow).where(ProductRow.product_id.in_([p.value for p in product_ids]))
        ).all()
        return Success({ProductId(r.product_id): _to_product(r) for r in rows})

    @db_result("add product")
    def add_product(
        self,
        name: str,
        price: Decimal,
        currency: str,
        description: str | None = None,
    ) -> Result[Product, PlaceOrderError]:
        row = ProductRow(
            name=name,
            description=description,
            price=Money.of(price, currency).amount,
            currency=currency,
        )
        self._session.add(row)
        self._session.flush()
        return Success(_to_product(row))

    @db_result("list products")
    def list_products(self) -> Result[Sequence[ProductListing], PlaceOrderError]:
        rows = self._session.execute(
            select(ProductRow, InventoryRow.stock_quantity)
            .outerjoin(InventoryRow, InventoryRow.product_id == ProductRow.product_id)
            .order_by(ProductRow.product_id)
        ).all()
        return Success(
            tuple(ProductListing(product=_to_product(p), stock_quantity=q) for p, q in rows)
        )


class SqlOrderRepository:
    def __init__(self, session: Session):
        self._session = session

    @db_result("save order")
    def add(self, order: Order) -> Result[OrderId, PlaceOrderError]:
        row = OrderRow(
            order_id=order.order_id.value,
            user_id=order.user_id.value,
            total_amount=order.total().amount,
            currency=order.currency,
            status=order.status,
            created_at=order.created_at,
            items=[
                OrderItemRow(
                    line_no=i,
                    product_id=li.product_id.value,
                    quantity=li.quantity,
                    price_at_time=li.price_at_time.amount,
                )
                for i, li in enumerate(order.items)
            ],
        )
        self._session.add(row)
        self._session.flush()
        return Success(order.order_id)

    @db_result("load order")
    def get(self, order_id: OrderId) -> Result[Order, PlaceOrderError]:
        row = self._session.scalars(
            select(OrderRow)
            .where(OrderRow.order_id == order_id.value)
            .options(selectinload(OrderRow.items))
        ).one_or_none()
        if row is None:
            return Failure(
                OrderNotFound(message="order not found", order_id=str(order_id.value))
            )
        return Success(_to_order(row))

    @db_result("list orders")
    def list_for_user(self, user_id: UserId) -> Result[Sequence[Order], PlaceOrderError]:
        rows = self._session.scalars(
            select(OrderRow)
            .where(OrderRow.user_id == user_id.value)
            .options(selectinload(OrderRow.items))
            .order_by(OrderRow.created_at, OrderRow.order_id)
        ).all()
        return Success(tuple(_to_order(r) for r in rows))


class SqlUserRepository:
    def __init__(self, session: Session):
        self._session = session

    @db_result("load user")
    def get_by_email(self, email: str) -> Result[User | None, PlaceOrderError]:
        row = self._session.scalars(
            select(UserRow).where(UserRow.email == email)
        ).one_or_none()
        return Success(_to_user(row) if row is not None else None)

    @db_result("register user")
    def add(self, email: str, username: str) -> Result[User, PlaceOrderError]:
        row = UserRow(email=email, username=username, created_at=now_utc())
        self._session.add(row)
        self._session.flush()
        return Success(_to_user(row))


# ---- row mapping -----------------------------------------------------------


def _to_product(row: ProductRow) -> Product:
    return Product(
        product_id=ProductId(row.product_id),
        name=row.name,
        price=Money.of(row.price, row.currency),
        description=row.description,
    )


def _to_order(row: OrderRow) -> Order:
    return Order(
        order_id=OrderId(row.order_id),
        user_id=UserId(row.user_id),
        items=tuple(
            LineItem(
                product_id=ProductId(it.product_id),
                price_at_time=Money.of(it.price_at_time, row.currency),
                quantity=it.quantity,
            )
            for it in row.items
        ),
        created_at=_aware(row.created_at),
        status=row.status,
    )


def _to_user(row: UserRow) -> User:
    return User(
        user_id=UserId(row.user_id),
        email=row.email,
        username=row.username,
        created_at=_aware(row.created_at),
    )


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
