"""OrderStateMachine and the /orders endpoints."""
from __future__ import annotations

import pytest

from cubecart.errors import Forbidden, InvalidTransition
from cubecart.models import Claims, OrderStatus, PaymentStatus, Role
from cubecart.services.orders import (
    ORDER_STATUS_EDGES,
    can_transition_order,
    can_transition_payment,
    transition,
    transition_payment,
)
from tests.fakes import SHIPPING, make_order

ADMIN = Claims(subject_id="root", email="root@example.com", role=Role.ADMIN, expires_at=2**31)
ALICE = Claims(subject_id="alice", email="alice@example.com", role=Role.USER, expires_at=2**31)


# ---------- adjacency ----------

@pytest.mark.parametrize("current,target", [
    (OrderStatus.PENDING, OrderStatus.PROCESSING),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
])
def test_allowed_order_edges(current, target):
    assert can_transition_order(current, target)


@pytest.mark.parametrize("current,target", [
    (OrderStatus.PENDING, OrderStatus.SHIPPED),
    (OrderStatus.PENDING, OrderStatus.DELIVERED),
    (OrderStatus.SHIPPED, OrderStatus.PROCESSING),
    (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
    (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
    (OrderStatus.CANCELLED, OrderStatus.PENDING),
    (OrderStatus.PENDING, OrderStatus.PENDING),
])
def test_rejected_order_edges(current, target):
    assert not can_transition_order(current, target)


def test_terminal_order_states():
    assert ORDER_STATUS_EDGES[OrderStatus.DELIVERED] == frozenset()
    assert ORDER_STATUS_EDGES[OrderStatus.CANCELLED] == frozenset()


def test_payment_edges():
    assert can_transition_payment(PaymentStatus.PENDING, PaymentStatus.COMPLETED)
    assert can_transition_payment(PaymentStatus.PENDING, PaymentStatus.FAILED)
    assert can_transition_payment(PaymentStatus.COMPLETED, PaymentStatus.REFUNDED)
    assert not can_transition_payment(PaymentStatus.PENDING, PaymentStatus.REFUNDED)
    assert not can_transition_payment(PaymentStatus.FAILED, PaymentStatus.COMPLETED)
    assert not can_transition_payment(PaymentStatus.REFUNDED, PaymentStatus.COMPLETED)


# ---------- pure transition ----------

def test_transition_returns_updated_copy():
    order = make_order("o1", "alice")
    moved = transition(order, OrderStatus.PROCESSING, ADMIN)
    assert moved.order_status == OrderStatus.PROCESSING
    assert order.order_status == OrderStatus.PENDING
    assert moved.owner_id == "alice"
    assert moved.payment_status == order.payment_status


def test_transition_skipping_processing_is_invalid():
    with pytest.raises(InvalidTransition):
        transition(make_order("o1", "alice"), OrderStatus.SHIPPED, ADMIN)


def test_non_admin_is_forbidden_before_adjacency_check():
    # invalid edge AND non-admin: Forbidden wins
    with pytest.raises(Forbidden):
        transition(make_order("o1", "alice"), OrderStatus.SHIPPED, ALICE)


def test_payment_transition_is_independent_of_order_status():
    order = make_order("o1", "alice", order_status=OrderStatus.SHIPPED)
    refunded = transition_payment(order, PaymentStatus.REFUNDED, ADMIN)
    assert refunded.payment_status == PaymentStatus.REFUNDED
    assert refunded.order_status == OrderStatus.SHIPPED


# ---------- GET /orders ----------

def test_list_requires_token(client, seeded_orders):
    assert client.get("/orders").status_code == 401


def test_list_rejects_bad_token(client, seeded_orders):
    resp = client.get("/orders", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json()["error"]["kind"] == "unauthenticated"


@pytest.mark.parametrize("token", ["v1.abc.\u00e9\u00e9", "v1.\u00e9\u00e9.abc"])
def test_list_rejects_non_ascii_token(client, seeded_orders, token):
    header = f"Bearer {token}".encode("latin-1")
    resp = client.get("/orders", headers={"Authorization": header})
    assert resp.status_code == 401
    assert resp.json()["error"]["kind"] == "unauthenticated"


def test_customer_lists_only_own_orders_newest_first(client, seeded_orders, bearer):
    resp = client.get("/orders", headers=bearer("alice"))
    assert resp.status_code == 200
    assert [o["id"] for o in resp.json()] == ["o-alice-new", "o-alice-old"]


def test_admin_lists_all_orders_newest_first(client, seeded_orders, bearer):
    resp = client.get("/orders", headers=bearer("root", Role.ADMIN))
    assert resp.status_code == 200
    assert [o["id"] for o in resp.json()] == ["o-alice-new", "o-bob", "o-alice-old"]


def test_order_json_shape(client, seeded_orders, bearer):
    order = client.get("/orders/o-bob", headers=bearer("bob")).json()
    assert order["ownerId"] == "bob"
    assert order["totalAmount"] == "20.00"
    assert order["orderStatus"] == "pending"
    assert order["paymentStatus"] == "completed"
    assert order["lineItemSnapshot"][0]["productName"] == "Cube Lamp"
    assert order["shippingAddress"]["zipCode"] == SHIPPING["zipCode"]


# ---------- GET /orders/{id} ----------

def test_owner_can_read_order(client, seeded_orders, bearer):
    resp = client.get("/orders/o-alice-old", headers=bearer("alice"))
    assert resp.status_code == 200
    assert resp.json()["id"] == "o-alice-old"


def test_other_customer_is_forbidden_and_sees_no_body(client, seeded_orders, bearer):
    for order_id in seeded_orders.orders:
        if order_id == "o-bob":
            continue
        resp = client.get(f"/orders/{order_id}", headers=bearer("bob"))
        assert resp.status_code == 403
        body = resp.json()
        assert body["error"]["kind"] == "forbidden"
        assert "lineItemSnapshot" not in resp.text
        assert "shippingAddress" not in resp.text


def test_admin_can_read_any_order(client, seeded_orders, bearer):
    assert client.get("/orders/o-bob", headers=bearer("root", Role.ADMIN)).status_code == 200


def test_missing_order(client, seeded_orders, bearer):
    assert client.get("/orders/nope", headers=bearer("alice")).status_code == 404


def test_read_without_token(client, seeded_orders):
    assert client.get("/orders/o-bob").status_code == 401


# ---------- PUT /orders/{id} ----------

def test_admin_advances_status(client, seeded_orders, bearer):
    resp = client.put("/orders/o-bob", json={"status": "processing"},
                      headers=bearer("root", Role.ADMIN))
    assert resp.status_code == 200, resp.text
    assert resp.json()["orderStatus"] == "processing"
    assert seeded_orders.orders["o-bob"].order_status == OrderStatus.PROCESSING


def test_admin_cannot_skip_processing(client, seeded_orders, bearer):
    resp = client.put("/orders/o-bob", json={"status": "shipped"},
                      headers=bearer("root", Role.ADMIN))
    assert resp.status_code == 400
    assert resp.json()["error"]["kind"] == "invalid_transition"
    assert seeded_orders.orders["o-bob"].order_status == OrderStatus.PENDING


def test_owner_cannot_change_status(client, seeded_orders, bearer):
    resp = client.put("/orders/o-bob", json={"status": "cancelled"}, headers=bearer("bob"))
    assert resp.status_code == 403
    assert seeded_orders.orders["o-bob"].order_status == OrderStatus.PENDING


def test_status_update_without_token(client, seeded_orders):
    assert client.put("/orders/o-bob", json={"status": "processing"}).status_code == 401


def test_status_update_on_missing_order(client, seeded_orders, bearer):
    resp = client.put("/orders/nope", json={"status": "processing"},
                      headers=bearer("root", Role.ADMIN))
    assert resp.status_code == 404


@pytest.mark.parametrize("body", [
    {"status": "teleported"},
    {"status": "processing", "totalAmount": "0.00"},
    {"status": "processing", "ownerId": "mallory"},
    {},
])
def test_status_update_body_is_strict(client, seeded_orders, bearer, body):
    resp = client.put("/orders/o-bob", json=body, headers=bearer("root", Role.ADMIN))
    assert resp.status_code == 400
    order = seeded_orders.orders["o-bob"]
    assert order.owner_id == "bob"
    assert order.order_status == OrderStatus.PENDING


def test_refund_via_payment_status(client, seeded_orders, bearer):
    resp = client.put("/orders/o-bob/payment-status", json={"status": "refunded"},
                      headers=bearer("root", Role.ADMIN))
    assert resp.status_code == 200, resp.text
    assert resp.json()["paymentStatus"] == "refunded"
    assert resp.json()["orderStatus"] == "pending"

    again = client.put("/orders/o-bob/payment-status", json={"status": "completed"},
                       headers=bearer("root", Role.ADMIN))
    assert again.status_code == 400


# ---------- POST /orders/confirm ----------

def _checkout(client, headers, qty=2):
    resp = client.post(
        "/payment-intents",
        json={"items": [{"productId": "p1", "qty": qty}], "shippingAddress": SHIPPING},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["paymentIntentId"]


def test_confirm_creates_order_and_commits_stock(client, fake_stripe, catalog, order_store, bearer):
    headers = bearer("alice")
    pi = _checkout(client, headers)
    fake_stripe.succeed(pi)

    resp = client.post("/orders/confirm",
                       json={"paymentIntentId": pi, "shippingAddress": SHIPPING},
                       headers=headers)
    assert resp.status_code == 200, resp.text
    order = resp.json()
    assert order["ownerId"] == "alice"
    assert order["totalAmount"] == "20.00"
    assert order["paymentStatus"] == "completed"
    assert order["orderStatus"] == "pending"
    assert order["paymentProviderReference"] == pi
    assert order["lineItemSnapshot"] == [{
        "productId": "p1", "productName": "Cube Lamp", "productImage": None,
        "unitPriceAtAuth": "10.00", "qty": 2,
    }]
    assert catalog.stock("p1") == 3


def test_confirm_is_idempotent(client, fake_stripe, catalog, order_store, bearer):
    headers = bearer("alice")
    pi = _checkout(client, headers)
    fake_stripe.succeed(pi)
    body = {"paymentIntentId": pi, "shippingAddress": SHIPPING}

    first = client.post("/orders/confirm", json=body, headers=headers).json()
    second = client.post("/orders/confirm", json=body, headers=headers).json()
    assert first["id"] == second["id"]
    assert len(order_store.orders) == 1
    assert catalog.stock("p1") == 3


def test_confirm_unpaid_intent(client, fake_stripe, order_store, bearer):
    headers = bearer("alice")
    pi = _checkout(client, headers)
    resp = client.post("/orders/confirm",
                       json={"paymentIntentId": pi, "shippingAddress": SHIPPING},
                       headers=headers)
    assert resp.status_code == 400
    assert order_store.orders == {}


def test_confirm_someone_elses_payment(client, fake_stripe, order_store, bearer):
    pi = _checkout(client, bearer("alice"))
    fake_stripe.succeed(pi)
    resp = client.post("/orders/confirm",
                       json={"paymentIntentId": pi, "shippingAddress": SHIPPING},
                       headers=bearer("mallory"))
    assert resp.status_code == 403
    assert order_store.orders == {}


def test_confirm_when_stock_ran_out(client, fake_stripe, catalog, order_store, bearer):
    # two checkouts both pass validation against stock 5
    headers = bearer("alice")
    first = _checkout(client, headers, qty=3)
    second = _checkout(client, headers, qty=3)
    fake_stripe.succeed(first)
    fake_stripe.succeed(second)

    ok = client.post("/orders/confirm",
                     json={"paymentIntentId": first, "shippingAddress": SHIPPING},
                     headers=headers)
    assert ok.status_code == 200
    oversold = client.post("/orders/confirm",
                           json={"paymentIntentId": second, "shippingAddress": SHIPPING},
                           headers=headers)
    assert oversold.status_code == 400
    assert oversold.json()["error"]["kind"] == "insufficient_stock"
    assert catalog.stock("p1") == 2
    assert len(order_store.orders) == 1


def test_price_change_after_payment_keeps_authorized_price(
    client, fake_stripe, catalog, order_store, bearer,
):
    headers = bearer("alice")
    pi = _checkout(client, headers)
    fake_stripe.succeed(pi)
    catalog.add("p1", "11.00", 5, name="Cube Lamp")

    resp = client.post("/orders/confirm", json={"paymentIntentId": pi}, headers=headers)
    assert resp.status_code == 200, resp.text
    order = resp.json()
    assert order["totalAmount"] == "20.00"
    assert order["lineItemSnapshot"][0]["unitPriceAtAuth"] == "10.00"
    assert catalog.stock("p1") == 3


def test_confirm_rejects_amount_mismatch(client, fake_stripe, catalog, order_store, bearer):
    headers = bearer("alice")
    pi = _checkout(client, headers)
    fake_stripe.succeed(pi)
    fake_stripe.intents[pi]["amount"] = 1500

    resp = client.post("/orders/confirm", json={"paymentIntentId": pi}, headers=headers)
    assert resp.status_code == 409
    assert order_store.orders == {}
    assert catalog.stock("p1") == 5


def test_guest_checkout_cannot_be_claimed(client, fake_stripe, catalog, order_store, bearer):
    pi = _checkout(client, {})
    fake_stripe.succeed(pi)
    elsewhere = {**SHIPPING, "name": "Mallory", "street": "1 Thief Rd"}

    resp = client.post("/orders/confirm",
                       json={"paymentIntentId": pi, "shippingAddress": elsewhere},
                       headers=bearer("mallory"))
    assert resp.status_code == 403
    assert order_store.orders == {}
    assert catalog.stock("p1") == 5


def test_confirm_ships_to_checkout_address(client, fake_stripe, order_store, bearer):
    headers = bearer("alice")
    pi = _checkout(client, headers)
    fake_stripe.succeed(pi)
    elsewhere = {**SHIPPING, "street": "1 Other Rd"}

    rerouted = client.post("/orders/confirm",
                           json={"paymentIntentId": pi, "shippingAddress": elsewhere},
                           headers=headers)
    assert rerouted.status_code == 400
    assert order_store.orders == {}

    ok = client.post("/orders/confirm", json={"paymentIntentId": pi}, headers=headers)
    assert ok.status_code == 200, ok.text
    assert ok.json()["shippingAddress"] == SHIPPING


def test_confirm_requires_login(client, fake_stripe):
    resp = client.post("/orders/confirm",
                       json={"paymentIntentId": "pi_1", "shippingAddress": SHIPPING})
    assert resp.status_code == 401
