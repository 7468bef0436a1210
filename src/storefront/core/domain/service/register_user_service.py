from __future__ import annotations

from dataclasses import dataclass

from returns.result import Failure, Result, Success

from storefront.core.domain.model.errors import (
    ConflictError,
    PlaceOrderError,
    ValidationError,
)
from storefront.core.domain.model.user import EMAIL_PATTERN, default_username
from storefront.core.ports.inbound.users import (
    RegisterUserCommand,
    RegisterUserUseCase,
    Registration,
)
from storefront.core.ports.outbound.unit_of_work import UnitOfWorkFactory
from storefront.logging_config import get_logger

logger = get_logger("services.users")


@dataclass(frozen=True)
class RegisterUserDeps:
    unit_of_work: UnitOfWorkFactory


@dataclass(frozen=True)
class RegisterUserService(RegisterUserUseCase):
    deps: RegisterUserDeps

    def register(
        self, command: RegisterUserCommand
    ) -> Result[Registration, PlaceOrderError]:
        email = (command.email or "").strip()
        if not EMAIL_PATTERN.match(email):
            return Failure(ValidationError("Valid email is required"))

        result = self._get_or_create(email)
        if isinstance(result, Failure) and isinstance(result.failure(), ConflictError):
            # lost the insert race to a concurrent registration: read the winner
            result = self._get_or_create(email)
        return result

    def _get_or_create(self, email: str) -> Result[Registration, PlaceOrderError]:
        with self.deps.unit_of_work() as uow:
            existing = uow.users.get_by_email(email)
            if isinstance(existing, Failure):
                return existing
            user = existing.unwrap()
            if user is not None:
                return Success(Registration(user=user, created=False))

            created = uow.users.add(email, default_username(email)).bind(
                lambda u: uow.commit().map(lambda _: Registration(user=u, created=True))
            )

        if isinstance(created, Success):
            logger.info(
                "user_registered",
                extra={"user_id": created.unwrap().user.user_id.value},
            )
        return created
