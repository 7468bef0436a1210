"""
Order placement against both stores.

Every test in ``TestPlaceOrder`` runs once on the in-memory store and once
on a file-backed SQLite database.
"""

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal

from returns.result import Failure, Success

from storefront.core.domain.model.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from storefront.core.domain.model.order import Money
from storefront.core.domain.service.get_order_service import GetOrderDeps, GetOrderService
from storefront.core.domain.service.list_orders_service import (
    ListOrdersDeps,
    ListOrdersService,
)
from storefront.core.domain.service.place_order_service import (
    PlaceOrderDeps,
    PlaceOrderService,
)
from storefront.core.ports.inbound.get_order import GetOrderQuery
from storefront.core.ports.inbound.list_orders import ListOrdersQuery
from storefront.core.ports.inbound.place_order import PlaceOrderCommand, PlaceOrderLine

from conftest import EURO_MUG, GADGET, GIZMO, WIDGET


def _cmd(user_id: int, *lines: tuple[int, int]) -> PlaceOrderCommand:
    return PlaceOrderCommand(
        user_id=user_id,
        lines=tuple(PlaceOrderLine(product_id=p, quantity=q) for p, q in lines),
    )


def _service(backend, retries: int = 0) -> PlaceOrderService:
    return PlaceOrderService(
        PlaceOrderDeps(unit_of_work=backend.unit_of_work, conflict_retries=retries)
    )


class TestPlaceOrder:
    def test_success_charges_current_prices(self, backend):
        result = _service(backend).place_order(_cmd(1, (WIDGET, 2), (GADGET, 1)))

        assert isinstance(result, Success)
        receipt = result.unwrap()
        assert receipt.total == Money.of("44.99")
        assert receipt.user_id.value == 1
        assert [(ln.product_id.value, ln.quantity, ln.price_at_time.amount) for ln in receipt.lines] == [
            (WIDGET, 2, Decimal("10.00")),
            (GADGET, 1, Decimal("24.99")),
        ]

    def test_success_decrements_stock_and_records_order(self, backend):
        _service(backend).place_order(_cmd(1, (WIDGET, 2), (GADGET, 1)))

        assert backend.stock_of(WIDGET) == 3
        assert backend.stock_of(GADGET) == 9
        assert backend.order_count() == 1
        assert backend.item_count() == 2

    def test_order_can_take_all_remaining_stock(self, backend):
        result = _service(backend).place_order(_cmd(1, (WIDGET, 5)))

        assert isinstance(result, Success)
        assert backend.stock_of(WIDGET) == 0

    def test_unknown_product_is_not_found(self, backend):
        result = _service(backend).place_order(_cmd(1, (WIDGET, 1), (999, 1)))

        assert isinstance(result, Failure)
        err = result.failure()
        assert isinstance(err, NotFoundError)
        assert err.product_id == 999
        assert "999" in str(err)
        assert backend.stock_of(WIDGET) == 5
        assert backend.order_count() == 0

    def test_product_id_beyond_storage_range_is_rejected(self, backend):
        result = _service(backend).place_order(_cmd(1, (WIDGET, 1), (10**20, 1)))

        assert isinstance(result.failure(), ValidationError)
        assert backend.stock_of(WIDGET) == 5
        assert backend.order_count() == 0

    def test_insufficient_stock_changes_nothing(self, backend):
        result = _service(backend).place_order(_cmd(1, (GADGET, 1), (WIDGET, 6)))

        err = result.failure()
        assert isinstance(err, InsufficientStockError)
        assert (err.product_id, err.requested, err.available) == (WIDGET, 6, 5)
        assert backend.stock_of(GADGET) == 10
        assert backend.stock_of(WIDGET) == 5
        assert backend.order_count() == 0
        assert backend.item_count() == 0

    def test_repeated_product_demand_is_summed(self, backend):
        """3 + 3 of one product exceeds stock 5 even though each line fits."""
        result = _service(backend).place_order(_cmd(1, (WIDGET, 3), (WIDGET, 3)))

        err = result.failure()
        assert isinstance(err, InsufficientStockError)
        assert err.requested == 6
        assert backend.stock_of(WIDGET) == 5

    def test_repeated_product_lines_are_kept(self, backend):
        result = _service(backend).place_order(_cmd(1, (WIDGET, 2), (WIDGET, 1)))

        receipt = result.unwrap()
        assert [ln.quantity for ln in receipt.lines] == [2, 1]
        assert receipt.total == Money.of("30.00")
        assert backend.stock_of(WIDGET) == 2
        assert backend.item_count() == 2

    def test_mixed_currencies_rejected(self, backend):
        result = _service(backend).place_order(_cmd(1, (WIDGET, 1), (EURO_MUG, 1)))

        assert isinstance(result.failure(), ValidationError)
        assert backend.stock_of(WIDGET) == 5
        assert backend.stock_of(EURO_MUG) == 3
        assert backend.order_count() == 0

    def test_price_snapshot_survives_price_change(self, backend):
        receipt = _service(backend).place_order(_cmd(7, (GIZMO, 3))).unwrap()
        backend.set_price(GIZMO, "9.99")

        view = GetOrderService(GetOrderDeps(backend.unit_of_work)).get_order(
            GetOrderQuery(order_id=str(receipt.order_id.value))
        ).unwrap()
        assert view.total == Money.of("0.30")
        assert view.lines[0].price_at_time == Money.of("0.10")

    def test_sequential_orders_drain_stock_exactly(self, backend):
        service = _service(backend)
        outcomes = [service.place_order(_cmd(1, (WIDGET, 2))) for _ in range(3)]

        assert [isinstance(r, Success) for r in outcomes] == [True, True, False]
        assert isinstance(outcomes[2].failure(), InsufficientStockError)
        assert backend.stock_of(WIDGET) == 1

    def test_placed_orders_are_listed_for_user(self, backend):
        service = _service(backend)
        first = service.place_order(_cmd(3, (WIDGET, 1))).unwrap()
        second = service.place_order(_cmd(3, (GADGET, 2))).unwrap()
        service.place_order(_cmd(4, (GIZMO, 1)))

        listed = ListOrdersService(ListOrdersDeps(backend.unit_of_work)).list_orders(
            ListOrdersQuery(user_id=3)
        ).unwrap()
        assert [v.order_id for v in listed] == [first.order_id, second.order_id]
        assert [v.total for v in listed] == [Money.of("10.00"), Money.of("49.98")]
        assert {v.status for v in listed} == {"created"}


class TestValidationBeforeStorage:
    """Invalid commands fail without opening a unit of work."""

    @staticmethod
    def _no_storage():
        raise AssertionError("unit of work opened for an invalid command")

    def test_empty_items(self):
        service = PlaceOrderService(PlaceOrderDeps(unit_of_work=self._no_storage))
        result = service.place_order(_cmd(1))
        assert isinstance(result.failure(), ValidationError)

    def test_zero_quantity(self):
        service = PlaceOrderService(PlaceOrderDeps(unit_of_work=self._no_storage))
        result = service.place_order(_cmd(1, (WIDGET, 0)))
        assert isinstance(result.failure(), ValidationError)


class _RecordingInventory:
    def __init__(self, inner, calls):
        self._inner = inner
        self._calls = calls

    def reserve(self, product_ids):
        self._calls.append(tuple(p.value for p in product_ids))
        return self._inner.reserve(product_ids)

    def decrement(self, demand):
        return self._inner.decrement(demand)

    def restock(self, product_id, quantity):
        return self._inner.restock(product_id, quantity)


class TestLockOrder:
    def test_reservation_uses_ascending_distinct_ids(self, store):
        calls: list[tuple[int, ...]] = []

        @contextmanager
        def recording_uow():
            with store.unit_of_work() as uow:
                uow.inventory = _RecordingInventory(uow.inventory, calls)
                yield uow

        service = PlaceOrderService(PlaceOrderDeps(unit_of_work=recording_uow))
        service.place_order(_cmd(1, (GIZMO, 1), (WIDGET, 1), (GADGET, 1), (WIDGET, 1)))

        assert calls == [(WIDGET, GADGET, GIZMO)]


class TestConflictRetry:
    def test_conflict_without_retries_leaves_no_trace(self, store, memory_backend):
        store.fail_commits = 1

        result = _service(memory_backend, retries=0).place_order(_cmd(1, (WIDGET, 2)))

        err = result.failure()
        assert isinstance(err, ConflictError)
        assert err.retryable is True
        assert store.stock_of(WIDGET) == 5
        assert store.order_count() == 0

    def test_conflict_is_retried_as_a_whole(self, store, memory_backend):
        store.fail_commits = 1

        result = _service(memory_backend, retries=1).place_order(_cmd(1, (WIDGET, 2)))

        assert isinstance(result, Success)
        assert store.stock_of(WIDGET) == 3
        assert store.order_count() == 1

    def test_retries_are_bounded(self, store, memory_backend):
        store.fail_commits = 5

        result = _service(memory_backend, retries=2).place_order(_cmd(1, (WIDGET, 1)))

        assert isinstance(result.failure(), ConflictError)
        assert store.fail_commits == 2

    def test_non_conflict_failures_are_not_retried(self, store, memory_backend):
        store.fail_commits = 1

        result = _service(memory_backend, retries=3).place_order(_cmd(1, (WIDGET, 9)))

        assert isinstance(result.failure(), InsufficientStockError)
        assert store.fail_commits == 1
