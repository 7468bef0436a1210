from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from storefront.adapters.inbound.web.fastapi_app import create_app
from storefront.asgi import app_for, create_app as create_asgi_app
from storefront.bootstrap import build_usecases
from storefront.config import Settings

from conftest import GADGET, WIDGET


@pytest.fixture
def client(store):
    settings = Settings(conflict_retries=0, log_json=False, log_level="WARNING")
    usecases = build_usecases(settings, unit_of_work=store.unit_of_work)
    with TestClient(app_for(usecases)) as c:
        yield c


def _order(client, user_id=1, items=((WIDGET, 2),)):
    return client.post(
        "/orders",
        json={
            "user_id": user_id,
            "items": [{"product_id": p, "quantity": q} for p, q in items],
        },
    )


class TestPlaceOrderEndpoint:
    def test_created(self, client, store):
        resp = _order(client, items=((WIDGET, 2), (GADGET, 1)))

        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Order created"
        assert body["total_amount"] == "44.99"
        assert body["currency"] == "USD"
        assert body["items"] == [
            {"product_id": WIDGET, "quantity": 2, "price_at_time": "10.00"},
            {"product_id": GADGET, "quantity": 1, "price_at_time": "24.99"},
        ]
        assert store.stock_of(WIDGET) == 3

    def test_empty_items_is_400(self, client):
        resp = _order(client, items=())

        assert resp.status_code == 400
        assert resp.json()["type"] == "ValidationError"

    def test_malformed_body_is_400(self, client):
        resp = client.post("/orders", json={"user_id": "abc", "items": "nope"})

        assert resp.status_code == 400
        body = resp.json()
        assert body["type"] == "RequestValidationError"
        assert body["details"]

    def test_unknown_product_is_404(self, client, store):
        resp = _order(client, items=((WIDGET, 1), (999, 1)))

        assert resp.status_code == 404
        body = resp.json()
        assert body["type"] == "NotFoundError"
        assert "999" in body["error"]
        assert store.order_count() == 0

    def test_product_id_beyond_storage_range_is_400(self, client, store):
        resp = _order(client, items=((WIDGET, 1), (10**20, 1)))

        assert resp.status_code == 400
        assert resp.json()["type"] == "ValidationError"
        assert store.order_count() == 0

    def test_insufficient_stock_is_400(self, client, store):
        resp = _order(client, items=((WIDGET, 6),))

        assert resp.status_code == 400
        body = resp.json()
        assert body["type"] == "InsufficientStockError"
        assert "requested=6" in body["error"]
        assert body["retryable"] is False
        assert store.stock_of(WIDGET) == 5

    def test_conflict_is_409_and_retryable(self, client, store):
        store.fail_commits = 1

        resp = _order(client)

        assert resp.status_code == 409
        assert resp.json()["retryable"] is True
        assert store.stock_of(WIDGET) == 5

    def test_request_id_is_echoed(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "req-42"})

        assert resp.headers["X-Request-ID"] == "req-42"

    def test_request_id_is_generated(self, client):
        assert client.get("/health").headers["X-Request-ID"]


class TestOrderQueries:
    def test_list_is_repeatable(self, client):
        _order(client, user_id=5)
        _order(client, user_id=5, items=((GADGET, 1),))

        first = client.get("/orders", params={"user_id": 5})
        second = client.get("/orders", params={"user_id": 5})

        assert first.status_code == 200
        assert first.json() == second.json()
        assert [o["total_amount"] for o in first.json()] == ["20.00", "24.99"]
        assert {o["status"] for o in first.json()} == {"created"}

    def test_list_for_user_without_orders_is_empty(self, client):
        resp = client.get("/orders", params={"user_id": 77})

        assert resp.status_code == 200
        assert resp.json() == []

    def test_list_requires_user_id(self, client):
        assert client.get("/orders").status_code == 400

    def test_list_with_user_id_beyond_storage_range_is_400(self, client):
        resp = client.get("/orders", params={"user_id": 10**20})

        assert resp.status_code == 400
        assert resp.json()["type"] == "ValidationError"

    def test_get_order(self, client):
        order_id = _order(client, user_id=2).json()["order_id"]

        resp = client.get(f"/orders/{order_id}")

        assert resp.status_code == 200
        body = resp.json()
        assert body["order_id"] == order_id
        assert body["user_id"] == 2
        assert body["items"] == [
            {"product_id": WIDGET, "price_at_time": "10.00", "quantity": 2, "subtotal": "20.00"}
        ]

    def test_get_unknown_order_is_404(self, client):
        resp = client.get("/orders/00000000-0000-4000-8000-000000000000")

        assert resp.status_code == 404
        assert resp.json()["type"] == "OrderNotFound"

    def test_get_malformed_order_id_is_400(self, client):
        assert client.get("/orders/not-a-uuid").status_code == 400


class TestCatalogEndpoints:
    def test_list_products(self, client):
        resp = client.get("/products")

        assert resp.status_code == 200
        widget = resp.json()[0]
        assert widget == {
            "product_id": WIDGET,
            "name": "Widget",
            "price": "10.00",
            "currency": "USD",
            "stock_quantity": 5,
        }

    def test_add_product_then_order_it(self, client):
        created = client.post(
            "/products", json={"name": "Doohickey", "price": "3.50", "stock_quantity": 4}
        )
        assert created.status_code == 201
        pid = created.json()["product_id"]

        resp = _order(client, items=((pid, 4),))

        assert resp.status_code == 201
        assert resp.json()["total_amount"] == "14.00"

    def test_add_product_rejects_non_positive_price(self, client):
        resp = client.post("/products", json={"name": "Free", "price": "0", "stock_quantity": 1})

        assert resp.status_code == 400

    def test_price_rounding_to_zero_is_400_not_conflict(self, client):
        resp = client.post(
            "/products", json={"name": "Crumb", "price": "0.004", "stock_quantity": 1}
        )

        assert resp.status_code == 400
        body = resp.json()
        assert body["type"] == "ValidationError"
        assert body["retryable"] is False


class TestUserEndpoints:
    def test_register_then_lookup(self, client):
        first = client.post("/users", json={"email": "alice@example.com"})
        second = client.post("/users", json={"email": "alice@example.com"})

        assert first.status_code == 201
        assert second.status_code == 200
        assert first.json()["user_id"] == second.json()["user_id"]

    def test_invalid_email_is_400(self, client):
        resp = client.post("/users", json={"email": "not-an-email"})

        assert resp.status_code == 400
        assert resp.json()["type"] == "ValidationError"


class _ExplodingPlaceOrder:
    def place_order(self, command):
        raise RuntimeError("database password is hunter2")


class TestUnexpectedErrors:
    def test_unexpected_exception_is_generic_500(self, store):
        usecases = build_usecases(
            Settings(log_json=False, log_level="CRITICAL"), unit_of_work=store.unit_of_work
        )
        app = create_app(
            _ExplodingPlaceOrder(),
            usecases.get_order,
            usecases.list_orders,
            usecases.catalog,
            usecases.register_user,
        )
        client = TestClient(app, raise_server_exceptions=False)

        resp = _order(client)

        assert resp.status_code == 500
        assert resp.json()["error"] == "internal server error"
        assert "hunter2" not in resp.text


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestCors:
    def test_frontend_origin_is_allowed(self, client):
        resp = client.get("/products", headers={"Origin": "http://localhost:3000"})

        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"

    def test_preflight_from_frontend_origin(self, client):
        resp = client.options(
            "/orders",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type",
            },
        )

        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"

    def test_other_origins_get_no_cors_header(self, client):
        resp = client.get("/products", headers={"Origin": "http://evil.example"})

        assert "access-control-allow-origin" not in resp.headers

    def test_origins_come_from_settings(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_CORS_ORIGINS", "https://shop.example, https://admin.example")
        monkeypatch.setenv("STOREFRONT_LOG_LEVEL", "WARNING")
        monkeypatch.delenv("STOREFRONT_DATABASE_URL", raising=False)

        with TestClient(create_asgi_app()) as c:
            allowed = c.get("/health", headers={"Origin": "https://admin.example"})
            default = c.get("/health", headers={"Origin": "http://localhost:3000"})

        assert allowed.headers["access-control-allow-origin"] == "https://admin.example"
        assert "access-control-allow-origin" not in default.headers
