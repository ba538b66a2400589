"""
End-to-end API tests: menu, checkout, callbacks and admin endpoints running
against the in-memory store and the mock gateway.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from app import main
from app.services.callback import CallbackHandler
from app.services.checkout import LOGIN_REQUIRED, CheckoutFlow
from app.services.payment import MockPaymentGateway
from app.services.payment.encoder import encode_envelope
from app.services.payment.mock import MOCK_SALT_INDEX, MOCK_SALT_KEY
from app.services.payment.signer import compute_checksum
from app.services.store import ORDERS, InMemoryDocumentStore

ADMIN = {"X-User-Id": "admin", "X-User-Name": "Admin", "X-User-Admin": "true"}
ASHA = {"X-User-Id": "u1", "X-User-Name": "Asha", "X-User-Email": "asha@example.com"}
RAVI = {"X-User-Id": "u2", "X-User-Name": "Ravi"}


@pytest.fixture
def services(monkeypatch):
    """Fresh store and gateway wired into every app entry point."""
    store = InMemoryDocumentStore()
    gateway = MockPaymentGateway()
    flow = CheckoutFlow(gateway=gateway, store=store, delivery_fee=main.settings.delivery_fee)
    handler = CallbackHandler(gateway, store)

    monkeypatch.setattr(main, "get_document_store", lambda: store)
    monkeypatch.setattr(main, "get_payment_gateway", lambda: gateway)
    monkeypatch.setattr(main, "get_checkout_flow", lambda: flow)
    monkeypatch.setattr(main, "get_callback_handler", lambda: handler)
    return store, gateway


@pytest.fixture
def client(services) -> TestClient:
    return TestClient(main.app)


def seed_menu(client: TestClient) -> dict[str, dict]:
    response = client.post("/api/admin/menu/populate", headers=ADMIN)
    assert response.status_code == 200
    items = client.get("/api/menu").json()["items"]
    return {item["name"]: item for item in items}


def cart_of(menu: dict[str, dict], **quantities: int) -> dict:
    names = {"naan": "Garlic Naan", "chai": "Masala Chai", "butter_chicken": "Butter Chicken"}
    return {
        "items": [
            {"item_id": menu[names[key]]["id"], "quantity": quantity}
            for key, quantity in quantities.items()
        ]
    }


# =============================================================================
# Menu and cart
# =============================================================================

def test_root(client) -> None:
    body = client.get("/").json()
    assert body["environment"] == "development"
    assert body["menu"] == "/api/menu"


def test_menu_listing_and_lookup(client) -> None:
    menu = seed_menu(client)

    naan = client.get(f"/api/menu/{menu['Garlic Naan']['id']}")
    assert naan.status_code == 200
    assert naan.json()["price"] == 60

    assert client.get("/api/menu/does-not-exist").status_code == 404
    breads = client.get("/api/menu", params={"category": "Breads"}).json()
    assert [i["name"] for i in breads["items"]] == ["Garlic Naan"]


def test_cart_quote_includes_delivery_fee(client) -> None:
    menu = seed_menu(client)

    quote = client.post("/api/cart/quote", json=cart_of(menu, naan=2, chai=1)).json()

    assert quote["subtotal"] == 170
    assert quote["delivery_fee"] == 40
    assert quote["total"] == 210
    assert quote["total_items"] == 3


def test_cart_quote_unknown_item(client) -> None:
    response = client.post("/api/cart/quote", json={"items": [{"item_id": "ghost", "quantity": 1}]})
    assert response.status_code == 400


# =============================================================================
# Checkout and callbacks
# =============================================================================

def test_checkout_requires_login(client, services) -> None:
    _, gateway = services
    menu = seed_menu(client)

    response = client.post("/api/checkout", json=cart_of(menu, naan=1))

    assert response.status_code == 401
    assert response.json()["message"] == LOGIN_REQUIRED
    assert gateway.submissions == []


def test_checkout_with_unknown_item(client) -> None:
    response = client.post(
        "/api/checkout",
        json={"items": [{"item_id": "ghost", "quantity": 1}]},
        headers=ASHA,
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_checkout_empty_cart(client) -> None:
    response = client.post("/api/checkout", json={"items": []}, headers=ASHA)
    assert response.status_code == 400
    assert response.json()["message"] == "Your cart is empty"


def test_checkout_then_redirect_callback_completes_order(client, services) -> None:
    _, gateway = services
    menu = seed_menu(client)

    response = client.post("/api/checkout", json=cart_of(menu, butter_chicken=1), headers=ASHA)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["state"] == "redirected"
    assert body["amount"] == 360
    assert body["redirect_url"] == f"http://testserver/payment/mock-pay/{body['order_id']}"
    assert gateway.submissions[0]["amount"] == 36000
    assert gateway.submissions[0]["callbackUrl"] == "http://testserver/api/payment/callback"

    order_id = body["order_id"]
    assert client.get(f"/api/orders/{order_id}", headers=ASHA).json()["status"] == "pending"

    page = client.get(f"/payment/mock-pay/{order_id}")
    assert page.status_code == 200
    assert order_id in page.text

    callback = client.post("/payment/callback", data={"transactionId": order_id, "code": "PAYMENT_SUCCESS"})
    assert callback.status_code == 200
    assert "Payment successful" in callback.text

    order = client.get(f"/api/orders/{order_id}", headers=ASHA).json()
    assert order["status"] == "completed"
    assert order["gatewayCode"] == "PAYMENT_SUCCESS"


def test_mock_pay_page_cancel_fails_order(client) -> None:
    menu = seed_menu(client)
    order_id = client.post("/api/checkout", json=cart_of(menu, naan=1), headers=ASHA).json()["order_id"]

    result = client.post(f"/payment/mock-pay/{order_id}", data={"transactionId": order_id, "code": "PAYMENT_ERROR"})

    assert result.status_code == 200
    assert client.get(f"/api/orders/{order_id}", headers=ASHA).json()["status"] == "failed"


def test_mock_pay_page_rejects_unknown_result(client) -> None:
    response = client.post("/payment/mock-pay/ORDER_1_u1", data={"transactionId": "ORDER_1_u1", "code": "PAID"})

    assert response.status_code == 400


def test_gateway_rejection_reaches_user(client, services) -> None:
    _, gateway = services
    gateway.reject_with = "insufficient funds"
    menu = seed_menu(client)

    response = client.post("/api/checkout", json=cart_of(menu, naan=1), headers=ASHA)

    assert response.status_code == 402
    assert response.json()["message"] == "insufficient funds"
    assert response.json()["state"] == "idle"


def test_gateway_network_failure(client, services) -> None:
    _, gateway = services
    gateway.fail_network = True
    menu = seed_menu(client)

    response = client.post("/api/checkout", json=cart_of(menu, naan=1), headers=ASHA)

    assert response.status_code == 502
    assert response.json()["message"] == "Failed to initiate payment. Please try again."


def test_redirect_callback_errors(client) -> None:
    missing = client.post("/payment/callback", data={"code": "PAYMENT_SUCCESS"})
    assert missing.status_code == 400

    unknown = client.post("/payment/callback", data={"transactionId": "ORDER_0_nobody"})
    assert unknown.status_code == 404


def test_server_callback_signature(client, services) -> None:
    store, _ = services
    asyncio.run(store.set(ORDERS, "ORDER_1_u1", {"status": "pending", "total": 400, "userId": "u1"}))
    response = encode_envelope({
        "success": True,
        "code": "PAYMENT_SUCCESS",
        "data": {"merchantTransactionId": "ORDER_1_u1", "transactionId": "T1", "amount": 40000},
    })
    good = compute_checksum(response, "", MOCK_SALT_KEY, MOCK_SALT_INDEX)

    forged = client.post("/api/payment/callback", json={"response": response}, headers={"X-VERIFY": "0" * 64 + "###1"})
    assert forged.status_code == 401
    assert asyncio.run(store.get(ORDERS, "ORDER_1_u1"))["status"] == "pending"

    accepted = client.post("/api/payment/callback", json={"response": response}, headers={"X-VERIFY": good})
    assert accepted.status_code == 200
    assert accepted.json() == {"success": True, "order_id": "ORDER_1_u1", "status": "completed"}


# =============================================================================
# Orders and admin
# =============================================================================

def test_orders_are_private(client) -> None:
    menu = seed_menu(client)
    order_id = client.post("/api/checkout", json=cart_of(menu, chai=1), headers=ASHA).json()["order_id"]

    assert client.get(f"/api/orders/{order_id}").status_code == 401
    assert client.get(f"/api/orders/{order_id}", headers=RAVI).status_code == 404
    assert client.get(f"/api/orders/{order_id}", headers=ADMIN).status_code == 200


def test_admin_endpoints_require_admin(client) -> None:
    assert client.get("/api/admin/dashboard").status_code == 401
    assert client.get("/api/admin/dashboard", headers=ASHA).status_code == 403
    assert client.post("/api/admin/menu/populate", headers=ASHA).status_code == 403


def test_admin_menu_crud(client) -> None:
    created = client.post(
        "/api/admin/menu",
        json={"name": "Samosa", "price": 40, "category": "Starters"},
        headers=ADMIN,
    )
    assert created.status_code == 201
    item_id = created.json()["id"]

    updated = client.put(f"/api/admin/menu/{item_id}", json={"price": 45}, headers=ADMIN)
    assert updated.json()["price"] == 45

    assert client.delete(f"/api/admin/menu/{item_id}", headers=ADMIN).status_code == 204
    assert client.delete(f"/api/admin/menu/{item_id}", headers=ADMIN).status_code == 404


def test_admin_rejects_blank_menu_fields(client) -> None:
    response = client.post(
        "/api/admin/menu",
        json={"name": "   ", "price": 40, "category": "Starters"},
        headers=ADMIN,
    )
    assert response.status_code == 422


def test_admin_orders_and_dashboard(client) -> None:
    menu = seed_menu(client)
    order_id = client.post("/api/checkout", json=cart_of(menu, naan=1), headers=ASHA).json()["order_id"]
    client.post("/payment/callback", data={"transactionId": order_id})
    client.post("/api/checkout", json=cart_of(menu, chai=2), headers=RAVI)

    orders = client.get("/api/admin/orders", headers=ADMIN).json()
    completed = client.get("/api/admin/orders", params={"status": "completed"}, headers=ADMIN).json()
    bad_filter = client.get("/api/admin/orders", params={"status": "shipped"}, headers=ADMIN)
    dashboard = client.get("/api/admin/dashboard", headers=ADMIN).json()

    assert orders["total"] == 2
    assert [o["id"] for o in completed["orders"]] == [order_id]
    assert bad_filter.status_code == 400
    assert dashboard["completed_orders"] == 1
    assert dashboard["pending_orders"] == 1
    assert dashboard["completed_revenue"] == 100
    assert dashboard["total_items"] == 8
