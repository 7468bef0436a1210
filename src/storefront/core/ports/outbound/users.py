from __future__ import annotations

from typing import Protocol

from returns.result import Result

from storefront.core.domain.model.errors import PlaceOrderError
from storefront.core.domain.model.user import User


class UserRepository(Protocol):
    """
    email is unique; add() fails with ConflictError when another writer
    registered the same address first.
    """

    def get_by_email(self, email: str) -> Result[User | None, PlaceOrderError]: ...

    def add(self, email: str, username: str) -> Result[User, PlaceOrderError]: ...
