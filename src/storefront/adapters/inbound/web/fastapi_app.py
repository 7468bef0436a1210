from __future__ import annotations

from decimal import Decimal
from typing import Any, Sequence
from uuid import uuid4

from fastapi import FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from returns.result import Success

from storefront.core.domain.model.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    OrderNotFound,
    PlaceOrderError,
    ValidationError,
)
from storefront.core.domain.model.order import DEFAULT_CURRENCY
from storefront.core.ports.inbound.catalog import AddProductCommand, CatalogUseCase
from storefront.core.ports.inbound.get_order import GetOrderQuery, GetOrderUseCase
from storefront.core.ports.inbound.list_orders import (
    ListOrdersQuery,
    ListOrdersUseCase,
)
from storefront.core.ports.inbound.place_order import (
    OrderReceipt,
    PlaceOrderCommand,
    PlaceOrderLine,
    PlaceOrderUseCase,
)
from storefront.core.ports.inbound.users import (
    RegisterUserCommand,
    RegisterUserUseCase,
)
from storefront.logging_config import LogContext, get_logger

logger = get_logger("web")

# ---- HTTP DTOs (adapter layer) ---------------------------------------------


class OrderItemIn(BaseModel):
    product_id: int = Field(examples=[1])
    quantity: int = Field(examples=[2])


class PlaceOrderRequest(BaseModel):
    user_id: int = Field(examples=[1])
    items: list[OrderItemIn]


class ChargedItemOut(BaseModel):
    product_id: int
    quantity: int
    price_at_time: str


class OrderCreatedResponse(BaseModel):
    message: str
    order_id: str
    user_id: int
    total_amount: str
    currency: str
    items: list[ChargedItemOut]


class OrderSummaryOut(BaseModel):
    order_id: str
    total_amount: str
    status: str
    created_at: str


class OrderLineOut(BaseModel):
    product_id: int
    price_at_time: str
    quantity: int
    subtotal: str


class OrderDetailsResponse(BaseModel):
    order_id: str
    user_id: int
    total_amount: str
    currency: str
    status: str
    created_at: str
    items: list[OrderLineOut]


class AddProductRequest(BaseModel):
    name: str = Field(min_length=1, examples=["Widget"])
    description: str | None = None
    price: Decimal = Field(gt=0, examples=["10.00"])
    currency: str = Field(DEFAULT_CURRENCY, min_length=3, max_length=3)
    stock_quantity: int = Field(ge=0, examples=[5])


class ProductOut(BaseModel):
    product_id: int
    name: str
    price: str
    currency: str
    stock_quantity: int | None


class ProductCreatedResponse(BaseModel):
    message: str
    product_id: int


class RegisterUserRequest(BaseModel):
    email: str = Field(examples=["alice@example.com"])


class UserIdResponse(BaseModel):
    user_id: int


class ErrorResponse(BaseModel):
    type: str
    error: str
    retryable: bool = False
    details: list[dict[str, Any]] | None = None


def _map_error_to_http(err: PlaceOrderError) -> tuple[int, ErrorResponse]:
    body = ErrorResponse(type=type(err).__name__, error=str(err), retryable=err.retryable)

    if isinstance(err, (ValidationError, InsufficientStockError)):
        return 400, body

    if isinstance(err, (NotFoundError, OrderNotFound)):
        return 404, body

    if isinstance(err, ConflictError):
        return 409, body

    # InternalError and anything unforeseen: no storage details leak out
    return 500, ErrorResponse(type=type(err).__name__, error="internal server error")


def _error_response(err: PlaceOrderError) -> JSONResponse:
    status, body = _map_error_to_http(err)
    return JSONResponse(status_code=status, content=body.model_dump())


def _receipt_response(receipt: OrderReceipt) -> OrderCreatedResponse:
    return OrderCreatedResponse(
        message="Order created",
        order_id=str(receipt.order_id.value),
        user_id=receipt.user_id.value,
        total_amount=str(receipt.total.amount),
        currency=receipt.total.currency,
        items=[
            ChargedItemOut(
                product_id=ln.product_id.value,
                quantity=ln.quantity,
                price_at_time=str(ln.price_at_time.amount),
            )
            for ln in receipt.lines
        ],
    )


def create_app(
    place_order_uc: PlaceOrderUseCase,
    get_order_uc: GetOrderUseCase,
    list_orders_uc: ListOrdersUseCase,
    catalog_uc: CatalogUseCase,
    register_user_uc: RegisterUserUseCase,
    cors_origins: Sequence[str] = (),
) -> FastAPI:
    app = FastAPI(title="storefront")

    # --- request context -----------------------------------------------------

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next: Any) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        with LogContext.bind(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    # added last so it wraps everything, preflight requests included
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(cors_origins),
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID"],
        )

    # --- exception handlers --------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        body = ErrorResponse(
            type="RequestValidationError",
            error="invalid request",
            details=[
                {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
                for e in exc.errors()
            ],
        )
        # malformed input is a 400 like any other validation failure
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(Exception)
    async def handle_unexpected(_: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_exception", exc_info=exc)
        body = ErrorResponse(type="InternalError", error="internal server error")
        return JSONResponse(status_code=500, content=body.model_dump())

    # --- routes --------------------------------------------------------------

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(
        "/orders",
        response_model=OrderCreatedResponse,
        status_code=201,
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    def place_order(req: PlaceOrderRequest) -> Any:
        cmd = PlaceOrderCommand(
            user_id=req.user_id,
            lines=tuple(
                PlaceOrderLine(product_id=it.product_id, quantity=it.quantity)
                for it in req.items
            ),
        )
        with LogContext.bind(user_id=str(req.user_id)):
            result = place_order_uc.place_order(cmd)

        if isinstance(result, Success):
            return _receipt_response(result.unwrap())
        return _error_response(result.failure())

    @app.get(
        "/orders",
        response_model=list[OrderSummaryOut],
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    def list_orders(user_id: int = Query(...)) -> Any:
        result = list_orders_uc.list_orders(ListOrdersQuery(user_id=user_id))

        if isinstance(result, Success):
            return [
                OrderSummaryOut(
                    order_id=str(v.order_id.value),
                    total_amount=str(v.total.amount),
                    status=v.status,
                    created_at=v.created_at.isoformat(),
                )
                for v in result.unwrap()
            ]
        return _error_response(result.failure())

    @app.get(
        "/orders/{order_id}",
        response_model=OrderDetailsResponse,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    )
    def get_order(order_id: str) -> Any:
        result = get_order_uc.get_order(GetOrderQuery(order_id=order_id))

        if isinstance(result, Success):
            v = result.unwrap()
            return OrderDetailsResponse(
                order_id=str(v.order_id.value),
                user_id=v.user_id.value,
                total_amount=str(v.total.amount),
                currency=v.total.currency,
                status=v.status,
                created_at=v.created_at.isoformat(),
                items=[
                    OrderLineOut(
                        product_id=ln.product_id,
                        price_at_time=str(ln.price_at_time.amount),
                        quantity=ln.quantity,
                        subtotal=str(ln.subtotal.amount),
                    )
                    for ln in v.lines
                ],
            )
        return _error_response(result.failure())

    @app.get("/products", response_model=list[ProductOut])
    def list_products() -> Any:
        result = catalog_uc.list_products()

        if isinstance(result, Success):
            return [
                ProductOut(
                    product_id=it.product.product_id.value,
                    name=it.product.name,
                    price=str(it.product.price.amount),
                    currency=it.product.price.currency,
                    stock_quantity=it.stock_quantity,
                )
                for it in result.unwrap()
            ]
        return _error_response(result.failure())

    @app.post(
        "/products",
        response_model=ProductCreatedResponse,
        status_code=201,
        responses={400: {"model": ErrorResponse}},
    )
    def add_product(req: AddProductRequest) -> Any:
        result = catalog_uc.add_product(
            AddProductCommand(
                name=req.name,
                description=req.description,
                price=req.price,
                currency=req.currency.upper(),
                stock_quantity=req.stock_quantity,
            )
        )

        if isinstance(result, Success):
            return ProductCreatedResponse(
                message="Product added", product_id=result.unwrap().product_id.value
            )
        return _error_response(result.failure())

    @app.post(
        "/users",
        response_model=UserIdResponse,
        status_code=201,
        responses={200: {"model": UserIdResponse}, 400: {"model": ErrorResponse}},
    )
    def register_user(req: RegisterUserRequest, response: Response) -> Any:
        result = register_user_uc.register(RegisterUserCommand(email=req.email))

        if isinstance(result, Success):
            reg = result.unwrap()
            if not reg.created:
                response.status_code = 200
            return UserIdResponse(user_id=reg.user.user_id.value)
        return _error_response(result.failure())

    return app
