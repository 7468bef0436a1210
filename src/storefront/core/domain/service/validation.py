from __future__ import annotations

from returns.result import Failure, Result, Success

from storefront.core.domain.model.errors import PlaceOrderError, ValidationError
from storefront.core.domain.model.order import MAX_INTEGER
from storefront.core.ports.inbound.place_order import PlaceOrderCommand


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def check_user_id(user_id: object) -> Result[int, PlaceOrderError]:
    if not _is_int(user_id):
        return Failure(ValidationError("user_id must be an integer"))
    if user_id <= 0:
        return Failure(ValidationError("user_id is required"))
    if user_id > MAX_INTEGER:
        return Failure(ValidationError("user_id is out of range"))
    return Success(user_id)


def validate_user_id(cmd: PlaceOrderCommand) -> Result[PlaceOrderCommand, PlaceOrderError]:
    return check_user_id(cmd.user_id).map(lambda _: cmd)


def validate_items(cmd: PlaceOrderCommand) -> Result[PlaceOrderCommand, PlaceOrderError]:
    if not cmd.lines:
        return Failure(ValidationError("at least one line item is required"))
    for i, ln in enumerate(cmd.lines):
        if not _is_int(ln.product_id):
            return Failure(ValidationError(f"items[{i}].product_id must be an integer"))
        if abs(ln.product_id) > MAX_INTEGER:
            return Failure(ValidationError(f"items[{i}].product_id is out of range"))
        if not _is_int(ln.quantity):
            return Failure(ValidationError(f"items[{i}].quantity must be an integer"))
        if ln.quantity <= 0:
            return Failure(ValidationError(f"items[{i}].quantity must be > 0"))
        if ln.quantity > MAX_INTEGER:
            return Failure(ValidationError(f"items[{i}].quantity is out of range"))
    return Success(cmd)


def validate_command(cmd: PlaceOrderCommand) -> Result[PlaceOrderCommand, PlaceOrderError]:
    return Success(cmd).bind(validate_user_id).bind(validate_items)
