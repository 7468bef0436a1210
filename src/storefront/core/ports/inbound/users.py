from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from storefront.core.domain.model.errors import PlaceOrderError
from storefront.core.domain.model.user import User


@dataclass(frozen=True)
class RegisterUserCommand:
    email: str


@dataclass(frozen=True)
class Registration:
    user: User
    created: bool


class RegisterUserUseCase(Protocol):
    def register(
        self, command: RegisterUserCommand
    ) -> Result[Registration, PlaceOrderError]:
        """Return the user owning ``email``, creating it on first sight."""
        ...
