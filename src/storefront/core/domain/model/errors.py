from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PlaceOrderError(Exception):
    message: str

    # retryable errors leave no partial effect behind; callers may resend as-is
    retryable = False

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ValidationError(PlaceOrderError):
    pass


@dataclass(frozen=True)
class NotFoundError(PlaceOrderError):
    product_id: int

    def __str__(self) -> str:
        return f"Product {self.product_id} not found"


@dataclass(frozen=True)
class OrderNotFound(PlaceOrderError):
    order_id: str

    def __str__(self) -> str:
        return f"Order {self.order_id} not found"


@dataclass(frozen=True)
class InsufficientStockError(PlaceOrderError):
    product_id: int
    requested: int
    available: int

    def __str__(self) -> str:
        return (
            f"Insufficient stock for product {self.product_id} "
            f"(requested={self.requested}, available={self.available})"
        )


@dataclass(frozen=True)
class ConflictError(PlaceOrderError):
    retryable = True


@dataclass(frozen=True)
class InternalError(PlaceOrderError):
    pass
