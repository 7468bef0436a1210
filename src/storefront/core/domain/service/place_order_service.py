from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from functools import partial
from typing import Mapping, Tuple

from returns.pipeline import flow
from returns.pointfree import bind, map_
from returns.result import Failure, Result, Success

from storefront.core.domain.model.catalog import Product
from storefront.core.domain.model.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    PlaceOrderError,
    ValidationError,
)
from storefront.core.domain.model.order import (
    LineItem,
    Order,
    OrderId,
    ProductId,
    UserId,
    now_utc,
)
from storefront.core.domain.service.validation import validate_command
from storefront.core.ports.inbound.place_order import (
    ChargedLine,
    OrderReceipt,
    PlaceOrderCommand,
    PlaceOrderUseCase,
)
from storefront.core.ports.outbound.unit_of_work import UnitOfWork, UnitOfWorkFactory
from storefront.logging_config import get_logger

logger = get_logger("services.place_order")


@dataclass(frozen=True)
class PlaceOrderDeps:
    unit_of_work: UnitOfWorkFactory
    conflict_retries: int = 0  # extra attempts after a ConflictError


@dataclass(frozen=True)
class ReservationPlan:
    command: PlaceOrderCommand
    # distinct ids, ascending: the lock order shared by every placement
    product_ids: Tuple[ProductId, ...]
    demand: Mapping[ProductId, int]


@dataclass(frozen=True)
class ReservedStock:
    plan: ReservationPlan
    stock: Mapping[ProductId, int]


@dataclass(frozen=True)
class LoadedProducts:
    plan: ReservationPlan
    stock: Mapping[ProductId, int]
    products: Mapping[ProductId, Product]


@dataclass(frozen=True)
class PricedOrder:
    plan: ReservationPlan
    order: Order


@dataclass(frozen=True)
class PlaceOrderService(PlaceOrderUseCase):
    deps: PlaceOrderDeps

    def place_order(
        self, command: PlaceOrderCommand
    ) -> Result[OrderReceipt, PlaceOrderError]:
        # input errors never reach storage
        validated = validate_command(command)
        if isinstance(validated, Failure):
            _log_rejected(validated.failure())
            return validated

        plan = _plan_reservation(validated.unwrap())
        max_attempts = 1 + max(self.deps.conflict_retries, 0)

        attempt = 1
        result = self._run_once(plan)
        while _is_conflict(result) and attempt < max_attempts:
            logger.info(
                "order_conflict_retry",
                extra={"attempt": attempt, "max_attempts": max_attempts},
            )
            attempt += 1
            result = self._run_once(plan)

        _log_outcome(plan, result)
        return result

    def _run_once(
        self, plan: ReservationPlan
    ) -> Result[OrderReceipt, PlaceOrderError]:
        with self.deps.unit_of_work() as uow:
            return flow(
                _reserve_stock(uow, plan),
                bind(partial(_load_products, uow)),
                bind(_check_stock),
                bind(_price_order),
                bind(partial(_persist, uow)),
                bind(partial(_commit, uow)),
                map_(_to_receipt),
            )


# ---- steps inside the unit of work ----------------------------------------


def _reserve_stock(
    uow: UnitOfWork, plan: ReservationPlan
) -> Result[ReservedStock, PlaceOrderError]:
    return uow.inventory.reserve(plan.product_ids).map(
        lambda stock: ReservedStock(plan=plan, stock=stock)
    )


def _load_products(
    uow: UnitOfWork, reserved: ReservedStock
) -> Result[LoadedProducts, PlaceOrderError]:
    found = uow.catalog.get_products(reserved.plan.product_ids)
    if isinstance(found, Failure):
        return found

    products = found.unwrap()
    for pid in reserved.plan.product_ids:
        if pid not in products:
            return Failure(NotFoundError("product not found", product_id=pid.value))
    return Success(LoadedProducts(plan=reserved.plan, stock=reserved.stock, products=products))


def _check_stock(loaded: LoadedProducts) -> Result[LoadedProducts, PlaceOrderError]:
    for pid in loaded.plan.product_ids:
        requested = loaded.plan.demand[pid]
        available = loaded.stock[pid]
        if requested > available:
            return Failure(
                InsufficientStockError(
                    "insufficient stock",
                    product_id=pid.value,
                    requested=requested,
                    available=available,
                )
            )
    return Success(loaded)


def _price_order(loaded: LoadedProducts) -> Result[PricedOrder, PlaceOrderError]:
    currencies = {p.price.currency for p in loaded.products.values()}
    if len(currencies) > 1:
        return Failure(
            ValidationError(
                "all items must share one currency, got " + ", ".join(sorted(currencies))
            )
        )

    # input order, one line per requested entry
    items = tuple(
        LineItem(
            product_id=ProductId(ln.product_id),
            price_at_time=loaded.products[ProductId(ln.product_id)].price,
            quantity=ln.quantity,
        )
        for ln in loaded.plan.command.lines
    )
    order = Order(
        order_id=OrderId.new(),
        user_id=UserId(loaded.plan.command.user_id),
        items=items,
        created_at=now_utc(),
    )
    return Success(PricedOrder(plan=loaded.plan, order=order))


def _persist(
    uow: UnitOfWork, priced: PricedOrder
) -> Result[PricedOrder, PlaceOrderError]:
    return (
        uow.orders.add(priced.order)
        .bind(lambda _: uow.inventory.decrement(priced.plan.demand))
        .map(lambda _: priced)
    )


def _commit(
    uow: UnitOfWork, priced: PricedOrder
) -> Result[PricedOrder, PlaceOrderError]:
    return uow.commit().map(lambda _: priced)


# ---- pure helpers ----------------------------------------------------------


def _plan_reservation(cmd: PlaceOrderCommand) -> ReservationPlan:
    demand: Counter[ProductId] = Counter()
    for ln in cmd.lines:
        demand[ProductId(ln.product_id)] += ln.quantity
    return ReservationPlan(
        command=cmd,
        product_ids=tuple(sorted(demand)),
        demand=dict(demand),
    )


def _to_receipt(priced: PricedOrder) -> OrderReceipt:
    order = priced.order
    return OrderReceipt(
        order_id=order.order_id,
        user_id=order.user_id,
        total=order.total(),
        lines=tuple(
            ChargedLine(
                product_id=li.product_id,
                quantity=li.quantity,
                price_at_time=li.price_at_time,
            )
            for li in order.items
        ),
    )


def _is_conflict(result: Result[OrderReceipt, PlaceOrderError]) -> bool:
    return isinstance(result, Failure) and isinstance(result.failure(), ConflictError)


def _log_outcome(
    plan: ReservationPlan, result: Result[OrderReceipt, PlaceOrderError]
) -> None:
    if isinstance(result, Success):
        receipt = result.unwrap()
        logger.info(
            "order_placed",
            extra={
                "order_id": str(receipt.order_id.value),
                "total_amount": receipt.total.amount,
                "product_ids": [pid.value for pid in plan.product_ids],
            },
        )
        return
    _log_rejected(result.failure())


def _log_rejected(err: PlaceOrderError) -> None:
    logger.info(
        "order_rejected",
        extra={"reason": type(err).__name__, "detail": str(err)},
    )
