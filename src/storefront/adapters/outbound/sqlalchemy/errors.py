from __future__ import annotations

import functools
from typing import Callable, TypeVar

from returns.result import Failure, Result
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from storefront.core.domain.model.errors import (
    ConflictError,
    InternalError,
    PlaceOrderError,
)
from storefront.logging_config import get_logger

logger = get_logger("adapters.sqlalchemy")

# serialization_failure, deadlock_detected, lock_not_available
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
_CONFLICT_MESSAGES = ("database is locked", "deadlock", "lock timeout", "could not serialize")
_UNIQUE_VIOLATION = "23505"
_UNIQUE_MESSAGES = ("unique constraint", "duplicate key")

T = TypeVar("T")


def translate_db_error(exc: SQLAlchemyError, action: str) -> PlaceOrderError:
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        text = str(orig).lower()
        if isinstance(exc, IntegrityError):
            # a concurrent writer took the same unique key; other violations are bugs
            if code == _UNIQUE_VIOLATION or any(m in text for m in _UNIQUE_MESSAGES):
                return ConflictError(f"{action}: constraint violated by a concurrent write")
        elif code in _CONFLICT_SQLSTATES or any(m in text for m in _CONFLICT_MESSAGES):
            logger.info("storage_conflict", extra={"action": action, "sqlstate": code})
            return ConflictError(f"{action}: concurrent transaction holds the lock")

    logger.error("storage_error", extra={"action": action}, exc_info=exc)
    return InternalError(f"{action} failed")


def db_result(
    action: str,
) -> Callable[
    [Callable[..., Result[T, PlaceOrderError]]],
    Callable[..., Result[T, PlaceOrderError]],
]:
    """Turn SQLAlchemy exceptions raised by a repository method into Failures."""

    def decorator(
        fn: Callable[..., Result[T, PlaceOrderError]],
    ) -> Callable[..., Result[T, PlaceOrderError]]:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs) -> Result[T, PlaceOrderError]:
            try:
                return fn(*args, **kwargs)
            except SQLAlchemyError as e:
                return Failure(translate_db_error(e, action))

        return wrapper

    return decorator
