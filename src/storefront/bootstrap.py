from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from functools import partial

from storefront.adapters.outbound.in_memory_store import InMemoryStore
from storefront.adapters.outbound.sqlalchemy.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from storefront.adapters.outbound.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
from storefront.config import Settings
from storefront.core.domain.service.catalog_service import CatalogDeps, CatalogService
from storefront.core.domain.service.get_order_service import (
    GetOrderDeps,
    GetOrderService,
)
from storefront.core.domain.service.list_orders_service import (
    ListOrdersDeps,
    ListOrdersService,
)
from storefront.core.domain.service.place_order_service import (
    PlaceOrderDeps,
    PlaceOrderService,
)
from storefront.core.domain.service.register_user_service import (
    RegisterUserDeps,
    RegisterUserService,
)
from storefront.core.ports.inbound.catalog import AddProductCommand
from storefront.core.ports.outbound.unit_of_work import UnitOfWorkFactory
from storefront.logging_config import configure_logging, get_logger

logger = get_logger("bootstrap")

DEMO_PRODUCTS = (
    AddProductCommand(name="Widget", price=Decimal("10.00"), stock_quantity=5),
    AddProductCommand(name="Gadget", price=Decimal("24.99"), stock_quantity=10),
)


@dataclass(frozen=True)
class UseCases:
    place_order: PlaceOrderService
    get_order: GetOrderService
    list_orders: ListOrdersService
    catalog: CatalogService
    register_user: RegisterUserService


def build_unit_of_work(settings: Settings) -> UnitOfWorkFactory:
    if settings.database_url:
        engine = init_engine_from_url(
            settings.database_url, lock_timeout_seconds=settings.lock_timeout_seconds
        )
        create_tables(engine)
        return partial(SqlAlchemyUnitOfWork, get_session_factory())

    logger.info("using_in_memory_store")
    store = InMemoryStore(lock_timeout_seconds=settings.lock_timeout_seconds)
    return store.unit_of_work


def build_usecases(
    settings: Settings | None = None,
    unit_of_work: UnitOfWorkFactory | None = None,
) -> UseCases:
    settings = settings or Settings.load_from_env()
    configure_logging(level=settings.log_level.upper(), json_output=settings.log_json)

    uow = unit_of_work or build_unit_of_work(settings)

    usecases = UseCases(
        place_order=PlaceOrderService(
            PlaceOrderDeps(unit_of_work=uow, conflict_retries=settings.conflict_retries)
        ),
        get_order=GetOrderService(GetOrderDeps(unit_of_work=uow)),
        list_orders=ListOrdersService(ListOrdersDeps(unit_of_work=uow)),
        catalog=CatalogService(CatalogDeps(unit_of_work=uow)),
        register_user=RegisterUserService(RegisterUserDeps(unit_of_work=uow)),
    )

    if settings.seed_demo_data:
        for cmd in DEMO_PRODUCTS:
            usecases.catalog.add_product(cmd)

    return usecases
