from types import SimpleNamespace

import stripe

from conftest import PRICING, SHIPPING, stock_of


def _order_body(product_id, size=10, quantity=1, **extra):
    body = {
        "items": [{"productId": str(product_id), "size": size, "quantity": quantity}],
        "shippingInfo": SHIPPING,
        "pricing": PRICING,
    }
    body.update(extra)
    return body


def test_payment_intent_returns_client_secret(client, monkeypatch):
    captured = {}

    def fake_create(**kwargs):
        captured.update(kwargs)
        return SimpleNamespace(client_secret="pi_1_secret_abc")

    monkeypatch.setattr(stripe, "api_key", "sk_test_123")
    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)

    res = client.post("/api/payment/create-payment-intent", json={"amount": 118.5})

    assert res.status_code == 200
    assert res.json() == {"success": True, "clientSecret": "pi_1_secret_abc"}
    assert captured["amount"] == 11850
    assert captured["currency"] == "usd"


def test_payment_intent_rejects_bad_amount(client):
    for body in ({}, {"amount": 0}, {"amount": -5}):
        res = client.post("/api/payment/create-payment-intent", json=body)
        assert res.status_code == 400
        assert res.json()["message"] == "Invalid amount"


def test_payment_intent_without_stripe_key(client, monkeypatch):
    monkeypatch.setattr(stripe, "api_key", None)
    res = client.post("/api/payment/create-payment-intent", json={"amount": 10})
    assert res.status_code == 503


def test_payment_intent_stripe_failure(client, monkeypatch):
    def failing_create(**kwargs):
        raise stripe.StripeError("card declined")

    monkeypatch.setattr(stripe, "api_key", "sk_test_123")
    monkeypatch.setattr(stripe.PaymentIntent, "create", failing_create)

    res = client.post("/api/payment/create-payment-intent", json={"amount": 10})

    assert res.status_code == 500
    assert res.json() == {"success": False, "message": "Failed to create payment intent", "error": "payment_error"}


def test_guest_checkout(client, db, make_product):
    pid = make_product(sizes={10: 2})
    res = client.post("/api/payment/create-order", json=_order_body(pid))

    assert res.status_code == 201
    data = res.json()["data"]
    assert data["user"] is None
    assert data["orderStatus"] == "processing"
    assert data["paymentInfo"]["paymentStatus"] == "pending"
    assert data["items"][0]["product"] == str(pid)
    assert stock_of(db, pid, 10) == 1


def test_checkout_with_token_links_user(client, make_user, make_product):
    user_id, headers = make_user()
    pid = make_product()
    res = client.post(
        "/api/payment/create-order",
        json=_order_body(pid, paymentIntentId="pi_42"),
        headers=headers,
    )

    data = res.json()["data"]
    assert data["user"] == user_id
    assert data["paymentInfo"]["paymentStatus"] == "paid"


def test_checkout_with_bad_token_is_guest(client, make_product):
    pid = make_product()
    res = client.post(
        "/api/payment/create-order",
        json=_order_body(pid),
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert res.status_code == 201
    assert res.json()["data"]["user"] is None


def test_checkout_insufficient_stock(client, db, make_product):
    pid = make_product(name="Court", sizes={10: 1})
    res = client.post("/api/payment/create-order", json=_order_body(pid, quantity=3))

    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Insufficient stock for Court (Size 10). Only 1 left."
    assert body["error"] == "insufficient_stock"
    assert db["order"].count_documents({}) == 0


def test_checkout_unknown_size(client, make_product):
    pid = make_product(name="Court", sizes={10: 1})
    res = client.post("/api/payment/create-order", json=_order_body(pid, size=7.5))
    assert res.status_code == 404
    assert res.json()["message"] == "Size 7.5 not available for Court"


def test_checkout_rejects_inconsistent_pricing(client, db, make_product):
    pid = make_product()
    body = _order_body(pid, pricing={"subtotal": 10, "shipping": 0, "tax": 0, "total": 99})
    res = client.post("/api/payment/create-order", json=body)

    assert res.status_code == 400
    assert stock_of(db, pid, 10) == 3


def test_checkout_requires_items(client):
    res = client.post("/api/payment/create-order", json={"items": [], "shippingInfo": SHIPPING, "pricing": PRICING})
    assert res.status_code == 400


def test_order_lookup_and_history(client, make_user, make_product):
    _, headers = make_user()
    pid = make_product(sizes={10: 5})
    created = client.post("/api/payment/create-order", json=_order_body(pid), headers=headers).json()["data"]

    by_number = client.get(f"/api/payment/order/{created['orderNumber']}")
    assert by_number.json()["data"]["id"] == created["id"]

    mine = client.get("/api/payment/my-orders", headers=headers).json()["data"]
    assert [o["id"] for o in mine] == [created["id"]]

    assert client.get("/api/payment/order/ORD-none-XXXXXX").status_code == 404
    assert client.get("/api/payment/my-orders").status_code == 401


def test_owner_cancel_endpoint(client, db, make_user, make_product):
    _, headers = make_user()
    pid = make_product(sizes={10: 3})
    order = client.post("/api/payment/create-order", json=_order_body(pid, quantity=2), headers=headers).json()["data"]

    res = client.patch(f"/api/payment/orders/{order['id']}/cancel", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["orderStatus"] == "cancelled"
    assert stock_of(db, pid, 10) == 3

    again = client.patch(f"/api/payment/orders/{order['id']}/cancel", headers=headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Order is already cancelled"
    assert stock_of(db, pid, 10) == 3


def test_cancel_other_users_order_forbidden(client, make_user, make_product):
    _, owner = make_user()
    _, stranger = make_user()
    pid = make_product()
    order = client.post("/api/payment/create-order", json=_order_body(pid), headers=owner).json()["data"]

    res = client.patch(f"/api/payment/orders/{order['id']}/cancel", headers=stranger)
    assert res.status_code == 403
    assert res.json()["message"] == "You can only cancel your own orders"


def test_cancel_unknown_order(client, make_user):
    _, headers = make_user()
    assert client.patch("/api/payment/orders/nope/cancel", headers=headers).status_code == 404


def test_admin_order_endpoints(client, db, make_user, make_product):
    _, admin = make_user(role="admin")
    _, user = make_user()
    pid = make_product(sizes={10: 3})
    order = client.post("/api/payment/create-order", json=_order_body(pid), headers=user).json()["data"]

    assert client.get("/api/payment/admin/orders", headers=user).status_code == 403
    listed = client.get("/api/payment/admin/orders", headers=admin).json()["data"]
    assert [o["id"] for o in listed] == [order["id"]]

    shipped = client.patch(f"/api/payment/admin/orders/{order['id']}", json={"orderStatus": "shipped"}, headers=admin)
    assert shipped.json()["data"]["orderStatus"] == "shipped"

    bad = client.patch(f"/api/payment/admin/orders/{order['id']}", json={"orderStatus": "lost"}, headers=admin)
    assert bad.status_code == 400

    cancelled = client.patch(f"/api/payment/admin/orders/{order['id']}/cancel", headers=admin)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["paymentInfo"]["paymentStatus"] == "refunded"
    assert stock_of(db, pid, 10) == 3
