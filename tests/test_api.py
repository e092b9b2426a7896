"""Tests for the FastAPI API."""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def api_client(temp_dir, monkeypatch):
    """Create test client backed by a temporary data directory."""
    monkeypatch.setenv("TOOLRENT_DATA_DIR", str(temp_dir))

    from toolrent.api import app

    return TestClient(app)


DRILL = {"id": 1, "name": "Cordless Drill", "brand": "Makita", "image": "/drill.jpg", "price": 1500}

CHECKOUT = {
    "delivery": {"address": "99 Sukhumvit Rd", "city": "Bangkok", "postal_code": "10110"},
    "customer": {"name": "Somchai Jaidee", "email": "somchai@example.com", "phone": "0812345678"},
    "payment_method": "card",
    "delivery_time": "09:00 - 11:00",
}


def checkout(client, **overrides):
    client.post("/api/cart/items", json=DRILL)
    client.patch("/api/cart/items/1", json={"days": 2})
    return client.post("/api/checkout", json={**CHECKOUT, **overrides})


class TestHealthCheck:
    def test_health_empty(self, api_client):
        response = api_client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["cart_items"] == 0
        assert data["order_count"] == 0
        assert data["recovered_errors"] == []

    def test_health_reports_recovered_corruption(self, api_client, temp_dir):
        (temp_dir / "cart.json").write_text("{broken")
        data = api_client.get("/api/health").json()
        assert len(data["recovered_errors"]) == 1
        assert "cart" in data["recovered_errors"][0]


class TestCart:
    def test_add_and_merge(self, api_client):
        assert api_client.post("/api/cart/items", json=DRILL).status_code == 201
        response = api_client.post("/api/cart/items", json=DRILL)

        data = response.json()
        assert len(data["items"]) == 1
        assert data["items"][0]["quantity"] == 2
        assert data["total_items"] == 2

    def test_totals(self, api_client):
        api_client.post("/api/cart/items", json=DRILL)
        data = api_client.patch("/api/cart/items/1", json={"days": 2}).json()

        assert data["items"][0]["line_total"] == 3000
        assert data["totals"]["subtotal"] == 3000
        assert data["totals"]["delivery_fee"] == 500
        assert data["totals"]["tax"] == pytest.approx(210)
        assert data["totals"]["display_total"] == "฿3,710"

    def test_invalid_quantity(self, api_client):
        api_client.post("/api/cart/items", json=DRILL)
        response = api_client.patch("/api/cart/items/1", json={"quantity": 0})

        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidQuantityError"
        assert api_client.get("/api/cart").json()["items"][0]["quantity"] == 1

    def test_invalid_days_rejects_whole_update(self, api_client):
        api_client.post("/api/cart/items", json=DRILL)
        response = api_client.patch("/api/cart/items/1", json={"quantity": 5, "days": 0})

        assert response.status_code == 400
        item = api_client.get("/api/cart").json()["items"][0]
        assert item["quantity"] == 1
        assert item["days"] == 1

    def test_update_quantity_and_days(self, api_client):
        api_client.post("/api/cart/items", json=DRILL)
        data = api_client.patch("/api/cart/items/1", json={"quantity": 2, "days": 3}).json()
        assert data["items"][0]["line_total"] == 9000

    def test_remove_missing_item_is_noop(self, api_client):
        api_client.post("/api/cart/items", json=DRILL)
        response = api_client.delete("/api/cart/items/999")
        assert response.status_code == 200
        assert response.json()["total_items"] == 1

    def test_clear(self, api_client):
        api_client.post("/api/cart/items", json=DRILL)
        assert api_client.delete("/api/cart").json()["items"] == []


class TestCheckout:
    def test_card_checkout(self, api_client):
        response = checkout(api_client)

        assert response.status_code == 201
        data = response.json()
        assert data["redirect"] == "/orders"
        order = data["order"]
        assert order["total_amount"] == 3000
        assert order["status"] == "payment_verification"
        assert order["status_label"] == "Awaiting Payment Verification"
        assert order["payment_verified"] is False
        assert api_client.get("/api/cart").json()["items"] == []

    def test_cod_checkout(self, api_client):
        order = checkout(api_client, payment_method="cod").json()["order"]
        assert order["status"] == "processing"
        assert order["payment_verified"] is True

    def test_incomplete_checkout(self, api_client):
        api_client.post("/api/cart/items", json=DRILL)
        response = api_client.post("/api/checkout", json={**CHECKOUT, "payment_method": None})

        assert response.status_code == 422
        assert response.json()["missing"] == ["payment_method"]
        assert api_client.get("/api/cart").json()["total_items"] == 1

    def test_empty_cart(self, api_client):
        response = api_client.post("/api/checkout", json=CHECKOUT)
        assert response.status_code == 422
        assert response.json()["error_type"] == "IncompleteCheckoutError"


class TestOrders:
    def test_list_and_get(self, api_client):
        order_id = checkout(api_client).json()["order"]["id"]

        listing = api_client.get("/api/orders").json()
        assert listing["count"] == 1
        assert api_client.get(f"/api/orders/{order_id}").json()["id"] == order_id

    def test_search(self, api_client):
        checkout(api_client)
        assert api_client.get("/api/orders?search=somchai").json()["count"] == 1
        assert api_client.get("/api/orders?search=nobody").json()["count"] == 0

    def test_get_missing_order(self, api_client):
        response = api_client.get("/api/orders/ORD-NOPE")
        assert response.status_code == 404
        assert response.json()["error_type"] == "OrderNotFoundError"

    def test_verify_then_advance(self, api_client):
        order_id = checkout(api_client).json()["order"]["id"]

        verified = api_client.post(f"/api/orders/{order_id}/verify-payment").json()
        assert verified["status"] == "processing"
        assert verified["payment_verified"] is True

        response = api_client.patch(f"/api/orders/{order_id}/status", json={"status": "delivered"})
        assert response.status_code == 200
        assert response.json()["status_label"] == "Delivered"

    def test_any_known_status_accepted(self, api_client):
        order_id = checkout(api_client).json()["order"]["id"]
        response = api_client.patch(f"/api/orders/{order_id}/status", json={"status": "completed"})
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_illegal_transition_with_strict_session(self, api_client, monkeypatch):
        from toolrent import api
        from toolrent.session import Session

        monkeypatch.setattr(api, "get_session", lambda: Session.open(strict_transitions=True))
        order_id = checkout(api_client).json()["order"]["id"]
        response = api_client.patch(f"/api/orders/{order_id}/status", json={"status": "completed"})

        assert response.status_code == 409
        assert response.json()["error_type"] == "InvalidStatusTransitionError"

    def test_unknown_status(self, api_client):
        order_id = checkout(api_client).json()["order"]["id"]
        response = api_client.patch(f"/api/orders/{order_id}/status", json={"status": "lost"})
        assert response.status_code == 400

    def test_status_of_missing_order(self, api_client):
        response = api_client.patch("/api/orders/ORD-NOPE/status", json={"status": "processing"})
        assert response.status_code == 404

    def test_verify_missing_order(self, api_client):
        assert api_client.post("/api/orders/ORD-NOPE/verify-payment").status_code == 404
