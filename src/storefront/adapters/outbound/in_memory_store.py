from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Sequence

from returns.result import Failure, Result, Success

from storefront.core.domain.model.catalog import Product, ProductListing
from storefront.core.domain.model.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    OrderNotFound,
    PlaceOrderError,
)
from storefront.core.domain.model.order import (
    Money,
    Order,
    OrderId,
    ProductId,
    UserId,
    now_utc,
)
from storefront.core.domain.model.user import User
from storefront.logging_config import get_logger

logger = get_logger("adapters.in_memory")


@dataclass
class InMemoryStore:
    """
    Process-local store. One lock per inventory record serializes placements
    that touch the same product; committed state only changes under
    ``_commit_lock`` so readers never see half of a unit of work.
    """

    lock_timeout_seconds: float = 5.0
    # upcoming commits to fail with ConflictError (simulates lost races)
    fail_commits: int = 0

    _products: Dict[int, Product] = field(default_factory=dict)
    _stock: Dict[int, int] = field(default_factory=dict)
    _orders: Dict[str, Order] = field(default_factory=dict)  # insertion order
    _users: Dict[int, User] = field(default_factory=dict)
    _row_locks: Dict[int, threading.Lock] = field(default_factory=dict)
    _commit_lock: threading.RLock = field(default_factory=threading.RLock)
    _next_product_id: int = 1
    _next_user_id: int = 1

    def unit_of_work(self) -> "InMemoryUnitOfWork":
        return InMemoryUnitOfWork(self)

    def seed_product(
        self,
        name: str,
        price: Decimal | str,
        stock_quantity: int,
        currency: str = "USD",
        product_id: int | None = None,
    ) -> Product:
        with self._commit_lock:
            pid = product_id if product_id is not None else self._allocate_product_id()
            self._next_product_id = max(self._next_product_id, pid + 1)
            product = Product(ProductId(pid), name, Money.of(price, currency))
            self._products[pid] = product
            self._stock[pid] = stock_quantity
            return product

    def stock_of(self, product_id: int) -> int | None:
        with self._commit_lock:
            return self._stock.get(product_id)

    def order_count(self) -> int:
        with self._commit_lock:
            return len(self._orders)

    # ---- internals (callers hold _commit_lock) -----------------------------

    def _allocate_product_id(self) -> int:
        pid = self._next_product_id
        self._next_product_id += 1
        return pid

    def _allocate_user_id(self) -> int:
        uid = self._next_user_id
        self._next_user_id += 1
        return uid

    def _row_lock(self, product_id: int) -> threading.Lock:
        with self._commit_lock:
            return self._row_locks.setdefault(product_id, threading.Lock())


class InMemoryUnitOfWork:
    def __init__(self, store: InMemoryStore):
        self._store = store
        self._held: List[int] = []
        self._new_orders: List[Order] = []
        self._new_products: List[Product] = []
        self._new_users: List[User] = []
        self._stock_delta: Dict[int, int] = defaultdict(int)
        self._committed = False

        self.catalog = _Catalog(self)
        self.inventory = _Inventory(self)
        self.orders = _Orders(self)
        self.users = _Users(self)

    def __enter__(self) -> "InMemoryUnitOfWork":
        return self

    def __exit__(self, *exc: Any) -> None:
        if not self._committed:
            self.rollback()
        for pid in reversed(self._held):
            self._store._row_locks[pid].release()
        self._held.clear()

    def commit(self) -> Result[None, PlaceOrderError]:
        store = self._store
        with store._commit_lock:
            if store.fail_commits > 0:
                store.fail_commits -= 1
                return Failure(ConflictError("concurrent update detected at commit"))

            emails = {u.email for u in store._users.values()}
            for u in self._new_users:
                if u.email in emails:
                    return Failure(ConflictError(f"email already registered: {u.email}"))

            staged_pids = {p.product_id.value for p in self._new_products}
            for pid, delta in self._stock_delta.items():
                if store._stock.get(pid, 0) + delta < 0:
                    return Failure(ConflictError(f"stock for product {pid} would go negative"))
                if pid not in store._stock and pid not in staged_pids:
                    return Failure(InternalError(f"no inventory record for product {pid}"))

            for p in self._new_products:
                store._products[p.product_id.value] = p
                store._stock.setdefault(p.product_id.value, 0)
            for pid, delta in self._stock_delta.items():
                store._stock[pid] += delta
            for o in self._new_orders:
                store._orders[str(o.order_id.value)] = o
            for u in self._new_users:
                store._users[u.user_id.value] = u

        self._committed = True
        self._clear_staged()
        return Success(None)

    def rollback(self) -> None:
        if self._new_orders or self._stock_delta:
            logger.debug("transaction_rolled_back")
        self._clear_staged()

    def _clear_staged(self) -> None:
        self._new_orders.clear()
        self._new_products.clear()
        self._new_users.clear()
        self._stock_delta.clear()


@dataclass
class _Inventory:
    uow: InMemoryUnitOfWork

    def reserve(
        self, product_ids: Sequence[ProductId]
    ) -> Result[Mapping[ProductId, int], PlaceOrderError]:
        store = self.uow._store
        stock: Dict[ProductId, int] = {}
        for pid in product_ids:
            if store.stock_of(pid.value) is None:
                return Failure(NotFoundError("product not found", product_id=pid.value))
            if pid.value not in self.uow._held:
                lock = store._row_lock(pid.value)
                if not lock.acquire(timeout=store.lock_timeout_seconds):
                    return Failure(
                        ConflictError(f"timed out reserving stock for product {pid.value}")
                    )
                self.uow._held.append(pid.value)
            stock[pid] = self._current(pid.value)
        return Success(stock)

    def decrement(self, demand: Mapping[ProductId, int]) -> Result[None, PlaceOrderError]:
        for pid, qty in demand.items():
            if pid.value not in self.uow._held:
                return Failure(InternalError(f"product {pid.value} decremented without reservation"))
            if self._current(pid.value) < qty:
                return Failure(ConflictError(f"stock for product {pid.value} changed"))
            self.uow._stock_delta[pid.value] -= qty
        return Success(None)

    def restock(self, product_id: ProductId, quantity: int) -> Result[None, PlaceOrderError]:
        self.uow._stock_delta[product_id.value] += quantity
        return Success(None)

    def _current(self, pid: int) -> int:
        committed = self.uow._store.stock_of(pid) or 0
        return committed + self.uow._stock_delta.get(pid, 0)


@dataclass
class _Catalog:
    uow: InMemoryUnitOfWork

    def get_products(
        self, product_ids: Sequence[ProductId]
    ) -> Result[Mapping[ProductId, Product], PlaceOrderError]:
        store = self.uow._store
        with store._commit_lock:
            found = {
                pid: store._products[pid.value]
                for pid in product_ids
                if pid.value in store._products
            }
        return Success(found)

    def add_product(
        self,
        name: str,
        price: Decimal,
        currency: str,
        description: str | None = None,
    ) -> Result[Product, PlaceOrderError]:
        store = self.uow._store
        with store._commit_lock:
            pid = store._allocate_product_id()
        product = Product(ProductId(pid), name, Money.of(price, currency), description)
        self.uow._new_products.append(product)
        return Success(product)

    def list_products(self) -> Result[Sequence[ProductListing], PlaceOrderError]:
        store = self.uow._store
        with store._commit_lock:
            return Success(
                tuple(
                    ProductListing(product=p, stock_quantity=store._stock.get(pid))
                    for pid, p in sorted(store._products.items())
                )
            )


@dataclass
class _Orders:
    uow: InMemoryUnitOfWork

    def add(self, order: Order) -> Result[OrderId, PlaceOrderError]:
        store = self.uow._store
        with store._commit_lock:
            if str(order.order_id.value) in store._orders:
                return Failure(InternalError("order_id already exists"))
        self.uow._new_orders.append(order)
        return Success(order.order_id)

    def get(self, order_id: OrderId) -> Result[Order, PlaceOrderError]:
        key = str(order_id.value)
        with self.uow._store._commit_lock:
            order = self.uow._store._orders.get(key)
        if order is None:
            return Failure(OrderNotFound(message="order not found", order_id=key))
        return Success(order)

    def list_for_user(self, user_id: UserId) -> Result[Sequence[Order], PlaceOrderError]:
        with self.uow._store._commit_lock:
            orders = [o for o in self.uow._store._orders.values() if o.user_id == user_id]
        return Success(tuple(sorted(orders, key=lambda o: (o.created_at, str(o.order_id.value)))))


@dataclass
class _Users:
    uow: InMemoryUnitOfWork

    def get_by_email(self, email: str) -> Result[User | None, PlaceOrderError]:
        with self.uow._store._commit_lock:
            for u in self.uow._store._users.values():
                if u.email == email:
                    return Success(u)
        return Success(None)

    def add(self, email: str, username: str) -> Result[User, PlaceOrderError]:
        store = self.uow._store
        with store._commit_lock:
            if any(u.email == email for u in store._users.values()):
                return Failure(ConflictError(f"email already registered: {email}"))
            uid = store._allocate_user_id()
        user = User(UserId(uid), email, username, now_utc())
        self.uow._new_users.append(user)
        return Success(user)
