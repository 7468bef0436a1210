"""
Pytest fixtures for the storefront test suite.

Provides:
- an in-memory store and a file-backed SQLite database, both seeded with
  the same small catalog
- a ``backend`` fixture parametrized over both, exposing the unit of work
  factory plus read helpers used to assert on committed state
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from functools import partial
from typing import Callable

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.orm import sessionmaker

from storefront.adapters.outbound.in_memory_store import InMemoryStore
from storefront.adapters.outbound.sqlalchemy.engine import build_engine, create_tables
from storefront.adapters.outbound.sqlalchemy.tables import (
    InventoryRow,
    OrderItemRow,
    OrderRow,
    ProductRow,
)
from storefront.adapters.outbound.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
from storefront.core.domain.model.order import Money
from storefront.core.ports.outbound.unit_of_work import UnitOfWorkFactory
from storefront.logging_config import reset_logging

WIDGET, GADGET, GIZMO, EURO_MUG = 1, 2, 3, 4

# (product_id, name, price, currency, stock)
CATALOG = (
    (WIDGET, "Widget", "10.00", "USD", 5),
    (GADGET, "Gadget", "24.99", "USD", 10),
    (GIZMO, "Gizmo", "0.10", "USD", 100),
    (EURO_MUG, "Euro Mug", "5.00", "EUR", 3),
)


@dataclass
class Backend:
    name: str
    unit_of_work: UnitOfWorkFactory
    stock_of: Callable[[int], "int | None"]
    order_count: Callable[[], int]
    item_count: Callable[[], int]
    set_price: Callable[[int, str], None]


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    reset_logging()


@pytest.fixture
def store() -> InMemoryStore:
    s = InMemoryStore(lock_timeout_seconds=5.0)
    for pid, name, price, currency, stock in CATALOG:
        s.seed_product(name, price, stock, currency=currency, product_id=pid)
    return s


@pytest.fixture
def sqlite_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'storefront.db'}", lock_timeout_seconds=5.0)
    create_tables(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    with factory() as session, session.begin():
        for pid, name, price, currency, stock in CATALOG:
            session.add(
                ProductRow(product_id=pid, name=name, price=Decimal(price), currency=currency)
            )
            session.flush()
            session.add(InventoryRow(product_id=pid, stock_quantity=stock))
    yield engine
    engine.dispose()


def _memory_backend(store: InMemoryStore) -> Backend:
    def set_price(pid: int, price: str) -> None:
        with store._commit_lock:
            product = store._products[pid]
            store._products[pid] = replace(
                product, price=Money.of(price, product.price.currency)
            )

    return Backend(
        name="memory",
        unit_of_work=store.unit_of_work,
        stock_of=store.stock_of,
        order_count=store.order_count,
        item_count=lambda: sum(len(o.items) for o in store._orders.values()),
        set_price=set_price,
    )


def _sqlite_backend(engine) -> Backend:
    factory = sessionmaker(bind=engine, expire_on_commit=False)

    def stock_of(pid: int) -> "int | None":
        with factory() as s:
            row = s.get(InventoryRow, pid)
            return row.stock_quantity if row is not None else None

    def count(model) -> int:
        with factory() as s:
            return s.scalar(select(func.count()).select_from(model))

    def set_price(pid: int, price: str) -> None:
        with factory() as s, s.begin():
            s.execute(update(ProductRow).where(ProductRow.product_id == pid).values(price=Decimal(price)))

    return Backend(
        name="sqlite",
        unit_of_work=partial(SqlAlchemyUnitOfWork, factory),
        stock_of=stock_of,
        order_count=lambda: count(OrderRow),
        item_count=lambda: count(OrderItemRow),
        set_price=set_price,
    )


@pytest.fixture(params=["memory", "sqlite"])
def backend(request) -> Backend:
    if request.param == "memory":
        return _memory_backend(request.getfixturevalue("store"))
    return _sqlite_backend(request.getfixturevalue("sqlite_engine"))


@pytest.fixture
def memory_backend(store) -> Backend:
    return _memory_backend(store)


@pytest.fixture
def sqlite_backend(sqlite_engine) -> Backend:
    return _sqlite_backend(sqlite_engine)
