"""Integration tests for the payment endpoints."""

import inspect

import pytest
from builders import ADDRESS, BUYER, FACILITY, stock
from fastapi import FastAPI
from fastapi.testclient import TestClient

from medflow.api import order_router, payment_router
from medflow.payments.gateway import get_gateway


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_router)
    app.include_router(payment_router)
    return TestClient(app)


@pytest.fixture()
def order(client):
    item = stock(quantity=5, unit_price=120.0)
    response = client.post(
        "/orders",
        json={
            "buyer_id": BUYER,
            "facility_id": FACILITY,
            "items": [{"stock_item_id": str(item.id), "quantity": 2}],
            "address": ADDRESS,
        },
    )
    return response.json()


class TestInitiatePaymentEndpoint:
    def test_card_payment_confirms_order(self, client, order):
        response = client.post("/payments", json={"order_id": order["order_id"], "method": "card"})

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "completed"
        assert data["amount"] == 240.0
        assert client.get(f"/orders/{order['order_id']}").json()["status"] == "confirmed"

    def test_amount_mismatch(self, client, order):
        response = client.post("/payments", json={"order_id": order["order_id"], "method": "card", "amount": 10.0})
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "amount_mismatch"

    def test_duplicate_payment(self, client, order):
        client.post("/payments", json={"order_id": order["order_id"], "method": "card"})
        response = client.post("/payments", json={"order_id": order["order_id"], "method": "card"})
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "duplicate_payment"

    def test_mobile_money_needs_phone(self, client, order):
        response = client.post("/payments", json={"order_id": order["order_id"], "method": "mobile_money"})
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "validation_error"

    def test_declined_payment_fails_order(self, client, order):
        client.put("/payments/gateway", json={"outcome": "failed", "failure_reason": "Insufficient funds"})
        response = client.post(
            "/payments",
            json={"order_id": order["order_id"], "method": "mobile_money", "phone_number": "+254700000001"},
        )

        assert response.status_code == 201
        assert response.json()["status"] == "failed"
        assert response.json()["failure_reason"] == "Insufficient funds"
        assert client.get(f"/orders/{order['order_id']}").json()["status"] == "failed"

    def test_unreachable_gateway_fails_order(self, client, order, monkeypatch):
        def unreachable(**kwargs):
            raise ConnectionError("connection reset by peer")

        monkeypatch.setattr(get_gateway(), "charge", unreachable)
        response = client.post("/payments", json={"order_id": order["order_id"], "method": "card"})

        assert response.status_code == 201
        assert response.json()["status"] == "failed"
        assert response.json()["failure_reason"] == "gateway_error"
        assert client.get(f"/orders/{order['order_id']}").json()["status"] == "failed"

    @pytest.mark.parametrize("endpoint", ["initiate_payment", "verify_payment", "refund_payment"])
    def test_gateway_routes_leave_the_event_loop(self, endpoint):
        endpoints = {route.name: route.endpoint for route in payment_router.routes}
        assert not inspect.iscoroutinefunction(endpoints[endpoint])


class TestVerifyAndRefundEndpoints:
    def test_verify_pending_payment(self, client, order):
        client.put("/payments/gateway", json={"outcome": "pending", "verify_outcome": "succeeded"})
        payment = client.post(
            "/payments",
            json={"order_id": order["order_id"], "method": "mobile_money", "phone_number": "+254700000001"},
        ).json()
        assert payment["status"] == "pending"

        response = client.post(f"/payments/{payment['payment_id']}/verify")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_refund(self, client, order):
        payment = client.post("/payments", json={"order_id": order["order_id"], "method": "card"}).json()
        response = client.post(f"/payments/{payment['payment_id']}/refund", json={"reason": "Damaged package"})

        assert response.status_code == 200
        assert response.json()["status"] == "refunded"
        assert response.json()["refund_reason"] == "Damaged package"

    def test_refund_declined_is_bad_gateway(self, client, order):
        payment = client.post("/payments", json={"order_id": order["order_id"], "method": "card"}).json()
        client.put("/payments/gateway", json={"refund_succeeds": False})

        response = client.post(f"/payments/{payment['payment_id']}/refund", json={"reason": "Damaged package"})
        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "refund_failed"

    def test_missing_payment(self, client):
        assert client.get("/payments/nope").status_code == 404


class TestGatewayEndpoint:
    def test_hidden_in_production(self, client, monkeypatch):
        monkeypatch.setenv("PROTEAN_ENV", "production")
        assert client.put("/payments/gateway", json={"outcome": "failed"}).status_code == 404
