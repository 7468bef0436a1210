from __future__ import annotations

from typing import Any

from returns.result import Failure, Result, Success
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from storefront.adapters.outbound.sqlalchemy.errors import translate_db_error
from storefront.adapters.outbound.sqlalchemy.repositories import (
    SqlCatalogStore,
    SqlInventoryLedger,
    SqlOrderRepository,
    SqlUserRepository,
)
from storefront.core.domain.model.errors import PlaceOrderError
from storefront.logging_config import get_logger

logger = get_logger("adapters.sqlalchemy.uow")


class SqlAlchemyUnitOfWork:
    """One session, one transaction; row locks are released on commit or rollback."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._committed = False

    def __enter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self._session_factory()
        self._committed = False
        self.catalog = SqlCatalogStore(self.session)
        self.inventory = SqlInventoryLedger(self.session)
        self.orders = SqlOrderRepository(self.session)
        self.users = SqlUserRepository(self.session)
        return self

    def __exit__(self, *exc: Any) -> None:
        try:
            if not self._committed:
                self.rollback()
        finally:
            self.session.close()

    def commit(self) -> Result[None, PlaceOrderError]:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.rollback()
            return Failure(translate_db_error(e, "commit"))
        self._committed = True
        return Success(None)

    def rollback(self) -> None:
        try:
            self.session.rollback()
        except SQLAlchemyError:
            logger.warning("rollback_failed", exc_info=True)
